from .loader import Dataset, load_dataset, load_dataset_async, normalize_links

__all__ = ['Dataset', 'load_dataset', 'load_dataset_async', 'normalize_links']
