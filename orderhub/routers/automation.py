from __future__ import annotations

from fastapi import APIRouter, Depends

from orderhub.deps import get_container
from orderhub.schemas.automation import AutomationConfig, WorkflowExecute
from orderhub.services.container import Container

router = APIRouter(prefix="/api/automation", tags=["automation"])


@router.get("/config")
def get_config(container: Container = Depends(get_container)):
    return container.automation.describe()


@router.put("/config")
def put_config(payload: AutomationConfig, container: Container = Depends(get_container)):
    container.automation.configure(base_url=payload.base_url, api_key=payload.api_key)
    return container.automation.describe()


@router.get("/workflows")
def list_workflows(container: Container = Depends(get_container)):
    return {"workflows": container.automation.list_workflows()}


@router.post("/workflows/{workflow_id}/execute")
def execute_workflow(workflow_id: str, payload: WorkflowExecute, container: Container = Depends(get_container)):
    return {"result": container.automation.execute_workflow(workflow_id, payload.data)}
