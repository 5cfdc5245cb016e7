"""The on-disk vault: document codec, dedup state, writer, tagger and backlinker."""
