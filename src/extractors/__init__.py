"""
Content extractors used by producers to build entry content from external sources.
"""
