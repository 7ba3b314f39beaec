"""Configuration file, key and certificate maps, and storage paths."""