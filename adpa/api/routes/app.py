from fastapi import APIRouter

router = APIRouter()


@router.get("/")
async def welcome():
    return {"message": "The ADPA plugin runtime is live!"}
