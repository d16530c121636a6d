"""Cache core: stores, notification buckets, optimistic mutations and fetch orchestration."""
