"""
Integration Tests

Integration tests require running external services:
- PostgreSQL (for database tests)
- Redis (for cache/session tests)
- Neo4j (for graph database tests)

Run services with: docker-compose up -d

These tests verify that all components work together correctly.
"""
