"""
Builder Session Test Suite

Load → edit → save against MemoryDocumentStore, lock propagation from the
document record, save bracketing and failure handling, preview.
"""
