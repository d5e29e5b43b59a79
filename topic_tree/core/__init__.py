"""
Core functionality for Topic Tree.

This package contains the main logic for:
- The topic tree model and defensive parsing of model output
- Subtree width calculation and deterministic tree layout
- The expand/collapse engine that keeps a positioned graph in sync
- Speech-to-text and chat-completion extraction of topic trees
- Configuration management
"""
