"""Services built on the accounting libraries."""
