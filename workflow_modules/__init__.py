"""
Workflow modules (``workflow_modules``).

Read-only feature modules built on top of ``workflow_kernel``.  Modules
consume kernel selectors and domain types; the kernel never imports them.
"""
