"""
Test suite for the production traceability reports service.

Run all tests: pytest
Run unit tests only: pytest tests/unit/
Run specific file: pytest tests/unit/test_fifo_allocation_service.py -v
"""
