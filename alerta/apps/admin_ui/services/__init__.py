"""Database-backed services used by the admin_ui routers."""
