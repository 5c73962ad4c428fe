"""
hrms_batch -- Batch execution and the daily probation sweep.

Per-item SAVEPOINT isolation, a probation completion task, the sweep
driver that runs it and an in-process daily scheduler.

Nothing in hrms_kernel, hrms_engines or hrms_services imports from here.
"""
