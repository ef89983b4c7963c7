"""
Core business logic for browsing object storage.

This module is framework-agnostic - it doesn't import FastAPI, boto3,
or any infrastructure concerns. The tree builder and pager can be tested
in isolation against in-memory listings.
"""
