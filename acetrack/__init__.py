"""AceTrack: multi-tenant event attendance tracking."""
