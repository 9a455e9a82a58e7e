"""Feature modules: credentials, cache, fetcher, providers, activities, sync."""
