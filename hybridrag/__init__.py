"""
hybridrag: hybrid vector + graph retrieval with a reranker race and cited answers.
"""

__version__ = "0.1.0"
