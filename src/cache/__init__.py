"""Response cache: keys, entries and storage backends."""
