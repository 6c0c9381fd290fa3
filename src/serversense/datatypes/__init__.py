"""Value types shared across the moderation pipeline."""
