"""
cab-report — Source package.

Modules:
    settings      — config.yaml loader, frozen settings dataclasses
    errors        — exception taxonomy
    model         — immutable Document / Section / Block / run types, side data
    sanitizer     — control-char stripping, list repair, length ceiling
    segmenter     — split on level-1 headings into sections
    classifier    — ordered keyword rules -> SectionKind, display labels
    inline        — markdown-it-py inline parsing -> runs
    cells         — table cell post-processor (<br> lists, over-bold, lead-bold)
    parser        — section body -> blocks (total, depth-capped)
    pipeline      — build_document() and the ReportStream settle controller
    theme         — per-kind section colours and icons
    telemetry     — fault reporters (log, webhook, in-memory)
    boundary      — per-section fault boundary
    interactive   — Document -> ViewNode tree
    html_export   — self-contained HTML export
    pdf_export    — ReportLab PDF export
"""
