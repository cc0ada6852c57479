"""Application services orchestrating domain logic over ports."""
