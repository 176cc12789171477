"""
Lead scoring feature package.

Domain models, the pure scoring engine, the tenant configuration layer,
storage, the periodic rescore job and the /scoring router live together
in this slice. Import the submodules directly; the router pulls in API
models that themselves depend on the domain package.
"""
