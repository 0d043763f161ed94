from fastapi import APIRouter, Depends

from jobdesk import quote_templates, schemas
from jobdesk.deps import get_current_user, get_store, to_http
from jobdesk.errors import JobDeskError
from jobdesk.store import DocumentStore

router = APIRouter(prefix="/templates", tags=["templates"])


@router.get("/", response_model=list[schemas.Template])
async def list_templates(user=Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    return await quote_templates.list_templates(store, user["tenant_id"])


@router.post("/", response_model=schemas.Template)
async def create_template(
    payload: schemas.TemplateCreate,
    user=Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    try:
        return await quote_templates.create_template(store, user["tenant_id"], payload)
    except JobDeskError as e:
        raise to_http(e)


@router.get("/default/{template_type}")
async def get_default_content(
    template_type: schemas.TemplateType,
    user=Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    content = await quote_templates.default_content(store, user["tenant_id"], template_type)
    return {"type": template_type, "content": content}


@router.patch("/{template_id}", response_model=schemas.Template)
async def update_template(
    template_id: str,
    payload: schemas.TemplateUpdate,
    user=Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    try:
        return await quote_templates.update_template(store, user["tenant_id"], template_id, payload)
    except JobDeskError as e:
        raise to_http(e)


@router.post("/{template_id}/default", response_model=schemas.Template)
async def make_default(template_id: str, user=Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    try:
        return await quote_templates.set_default(store, user["tenant_id"], template_id)
    except JobDeskError as e:
        raise to_http(e)


@router.delete("/{template_id}", status_code=204)
async def delete_template(template_id: str, user=Depends(get_current_user), store: DocumentStore = Depends(get_store)):
    try:
        await quote_templates.delete_template(store, user["tenant_id"], template_id)
    except JobDeskError as e:
        raise to_http(e)
    return None
