"""Job orchestration for code generation runs.

A run resolves the files selected by each transform rule, hands every file to a
fixed pool of worker contexts, and reports one line per settled job. Batch runs
drain the pool and exit; watch runs keep dispatching on file events until the
configuration file changes, a job fails under ``failOnError``, or the process is
signalled.
"""
