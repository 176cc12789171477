"""
Shared FastAPI dependencies.
"""

from fastapi import Header, HTTPException, status


async def tenant_dependency(x_tenant_id: str | None = Header(default=None)) -> str:
    """Tenant scoping for every CRM route, taken from the X-Tenant-ID header."""
    tenant_id = (x_tenant_id or "").strip()
    if not tenant_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Missing X-Tenant-ID header"
        )
    return tenant_id
