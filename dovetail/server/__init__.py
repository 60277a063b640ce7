"""HTTP service exposing the decode and encode pipelines."""
