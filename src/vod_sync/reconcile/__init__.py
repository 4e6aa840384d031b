"""Reconciliation of watch-list tasks with scraped VOD metadata.

One run lists the project's tasks, drops the ones already handled today,
closes repeats of the same Filmweb title, and then, with bounded concurrency
and a fixed retry policy, writes VOD subscription labels and today's marker
back to every remaining task.
"""
