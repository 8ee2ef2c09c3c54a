"""Find the commit pending changes should be fixed up into."""
