"""HTTP surface of the Apex fleet backend."""
