"""
Test suite for Topic Tree.

This package contains tests for all core functionality including:
- Topic tree parsing and traversal
- Subtree width calculation and layout placement
- The expand/collapse engine
- Extraction and validation with a mocked chat model
- Configuration management and the CLI
"""
