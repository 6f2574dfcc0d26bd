"""Command-line interface for upcache."""
