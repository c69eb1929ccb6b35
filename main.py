import os
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, File, Form, Request, Response, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from pymongo.database import Database

from config import Settings, configure_logging
from database import connect, ensure_indexes
from errors import install_error_handlers
from products import ProductStore, ReviewAggregator
from schemas import (
    LoginRequest,
    MessageResponse,
    ProductFields,
    ProductOut,
    ProfileUpdateRequest,
    RegisterRequest,
    ReviewRequest,
    UserOut,
    UserUpdateRequest,
    LoginResponse,
)
from security import Principal, TokenIssuer, get_principal, require_admin
from uploads import PUBLIC_PATH, ImageStore
from users import CredentialStore

logger = logging.getLogger(__name__)


# Dependencies

def get_credentials(request: Request) -> CredentialStore:
    return request.app.state.credentials


def get_products(request: Request) -> ProductStore:
    return request.app.state.products


def product_form(
    name: str = Form(...),
    price: float = Form(..., ge=0),
    brand: str = Form(...),
    category: str = Form(...),
    count_in_stock: int = Form(0, ge=0, alias="countInStock"),
    description: str = Form(""),
) -> ProductFields:
    return ProductFields(name=name, price=price, brand=brand, category=category,
                         count_in_stock=count_in_stock, description=description)


# Users

users_router = APIRouter(tags=["Users"])


@users_router.post("/users", response_model=UserOut)
def register(payload: RegisterRequest, credentials: CredentialStore = Depends(get_credentials)):
    return credentials.register(payload.name, payload.email, payload.password)


@users_router.post("/users/login", response_model=LoginResponse)
def login(payload: LoginRequest, request: Request, response: Response,
          credentials: CredentialStore = Depends(get_credentials)):
    user = credentials.authenticate(payload.email, payload.password)
    settings: Settings = request.app.state.settings
    token = request.app.state.tokens.issue(user["id"], user.get("is_admin", False))
    response.set_cookie(
        key=settings.cookie_name,
        value=token,
        httponly=True,
        secure=not settings.is_development,
        samesite="strict",
        max_age=int(settings.token_ttl.total_seconds()),
    )
    return {**user, "token": token}


@users_router.post("/users/logout", response_model=MessageResponse)
def logout(request: Request, response: Response, principal: Principal = Depends(get_principal)):
    response.delete_cookie(request.app.state.settings.cookie_name)
    return {"message": "Logged out successfully"}


@users_router.get("/users/profile", response_model=UserOut)
def get_profile(principal: Principal = Depends(get_principal),
                credentials: CredentialStore = Depends(get_credentials)):
    return credentials.get_user(principal.user_id)


@users_router.put("/users/profile", response_model=UserOut)
def update_profile(payload: ProfileUpdateRequest, principal: Principal = Depends(get_principal),
                   credentials: CredentialStore = Depends(get_credentials)):
    return credentials.update_profile(principal.user_id, name=payload.name, email=payload.email,
                                      password=payload.password)


@users_router.get("/users", response_model=List[UserOut], dependencies=[Depends(require_admin)])
def list_users(credentials: CredentialStore = Depends(get_credentials)):
    return credentials.list_users()


@users_router.get("/users/{user_id}", response_model=UserOut, dependencies=[Depends(require_admin)])
def get_user(user_id: str, credentials: CredentialStore = Depends(get_credentials)):
    return credentials.get_user(user_id)


@users_router.put("/users/{user_id}", response_model=UserOut, dependencies=[Depends(require_admin)])
def update_user(user_id: str, payload: UserUpdateRequest,
                credentials: CredentialStore = Depends(get_credentials)):
    return credentials.update_user(user_id, name=payload.name, email=payload.email,
                                   is_admin=payload.is_admin)


@users_router.delete("/users/{user_id}", response_model=MessageResponse, dependencies=[Depends(require_admin)])
def delete_user(user_id: str, credentials: CredentialStore = Depends(get_credentials)):
    credentials.delete_user(user_id)
    return {"message": "User removed"}


# Products

products_router = APIRouter(tags=["Products"])


@products_router.get("/products", response_model=List[ProductOut])
def list_products(products: ProductStore = Depends(get_products)):
    return products.list_products()


@products_router.get("/products/{product_id}", response_model=ProductOut)
def get_product(product_id: str, products: ProductStore = Depends(get_products)):
    return products.get_product(product_id)


@products_router.post("/products", response_model=ProductOut)
def create_product(request: Request, admin: Principal = Depends(require_admin),
                   fields: ProductFields = Depends(product_form),
                   image: Optional[UploadFile] = File(None),
                   products: ProductStore = Depends(get_products)):
    images: ImageStore = request.app.state.images
    image_url = images.save(image, str(request.base_url))
    return products.create_product(admin.user_id, fields, image_url)


@products_router.put("/products/{product_id}", response_model=ProductOut,
                     dependencies=[Depends(require_admin)])
def update_product(product_id: str, request: Request, fields: ProductFields = Depends(product_form),
                   image: Optional[UploadFile] = File(None),
                   products: ProductStore = Depends(get_products)):
    images: ImageStore = request.app.state.images
    if image is not None:
        images.validate(image)
    products.get_product(product_id)
    image_url = images.save(image, str(request.base_url)) if image is not None else None
    try:
        return products.update_product(product_id, fields, image_url)
    except Exception:
        if image_url:
            images.discard(image_url)
        raise


@products_router.delete("/products/{product_id}", response_model=MessageResponse,
                        dependencies=[Depends(require_admin)])
def delete_product(product_id: str, products: ProductStore = Depends(get_products)):
    products.delete_product(product_id)
    return {"message": "Product removed"}


@products_router.post("/products/{product_id}/reviews", response_model=MessageResponse)
def create_review(product_id: str, payload: ReviewRequest, request: Request,
                  principal: Principal = Depends(get_principal),
                  credentials: CredentialStore = Depends(get_credentials)):
    reviewer = credentials.get_user(principal.user_id)
    request.app.state.reviews.add_review(product_id, principal.user_id, reviewer["name"],
                                         payload.rating, payload.comment)
    return {"message": "Review added"}


# Application

def create_app(settings: Optional[Settings] = None, db: Optional[Database] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings)
    if db is None:
        db = connect(settings)
    ensure_indexes(db)

    app = FastAPI(title="Shop API")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_error_handlers(app, settings.is_development)

    app.state.settings = settings
    app.state.db = db
    app.state.tokens = TokenIssuer(settings)
    app.state.credentials = CredentialStore(db)
    app.state.products = ProductStore(db)
    app.state.reviews = ReviewAggregator(app.state.products)
    app.state.images = ImageStore(settings.upload_dir)

    @app.get("/")
    def read_root():
        return {"message": "API is running"}

    @app.get("/health")
    def health():
        response = {
            "backend": "Running",
            "database": "Not Available",
            "database_name": settings.database_name,
            "collections": [],
        }
        try:
            response["collections"] = db.list_collection_names()
            response["database"] = "Connected"
        except Exception as e:
            logger.warning("Health check could not reach database: %s", e)
            response["database"] = f"Error: {str(e)[:80]}"
        return response

    app.include_router(users_router)
    app.include_router(products_router)

    os.makedirs(settings.upload_dir, exist_ok=True)
    app.mount(f"/{PUBLIC_PATH}", StaticFiles(directory=settings.upload_dir), name="uploads")

    logger.info("Application created in %s mode", settings.environment)
    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:create_app", factory=True, host="0.0.0.0", port=Settings.from_env().port)
