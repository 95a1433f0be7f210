"""Check sequencing."""
