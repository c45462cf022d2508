"""HTTP application: edge middleware, JSON API and cache layer."""
