"""Desktop notifier stand-in receiving pizza timer alerts."""
