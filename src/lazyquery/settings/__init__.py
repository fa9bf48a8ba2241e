"""Settings document handling for lazy query views."""
