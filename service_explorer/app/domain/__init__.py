"""
Catalog response models.
"""
