"""Provisioning workflow: context, steps, hooks, uploads and rollback.

Architecture::

    context.py      ProvisionContext and StepRecord
    clients.py      Interfaces of the identity, storage and convergence services
    hooks.py        WorkflowHooks and hook invocation
    validation.py   Precondition checks
    roles.py        RoleResolver
    build.py        Toolchain, GoToolchain, BuildPipeline
    shim.py         Dispatch shim and support scripts
    upload.py       UploadManager
    rollback.py     RollbackAction, rollback_all
    steps.py        verify_roles → package → upload → assemble_graph → converge
    engine.py       provision(), ProvisionResult
"""
