# codesort — Recovered Source Code Sorter
# Classify, deduplicate and file the output of a file-carving recovery tool.
#
# Architecture (bottom → top):
#   categories   — Fixed category table (label → output directory, extension)
#   probe        — Content-type probe (magic headers, Pillow, entropy)
#   rules        — Rule variants: shebang, signatures, extension, weighted fallback
#   classifier   — Candidate sampling + first-match-wins detection
#   dedup        — SHA-256 cross-reference index, per-bucket locking
#   progress     — Shared counter, event channel, terminal progress bar
#   distributor  — Sharded worker threads (classify → hash → register → write)
#   fragments    — Template/script/style fragment reconstruction
#   config       — SortConfig, size parsing, validation
#   manager      — Orchestrator (bootstrap, run, reconcile, log, zip)
