import os
import re
import uuid
import time
import logging
from typing import Optional, List, Dict, Any, Tuple
from datetime import datetime, timedelta, timezone

from fastapi import FastAPI, HTTPException, Header, UploadFile, File, Form, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from jose import jwt, JWTError
from passlib.context import CryptContext
from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.errors import PyMongoError

from codes import generate_codes, hash_code
from database import db, create_document, get_documents, log_connection_status, write_enabled
from schemas import (
    ORDER_STATUSES,
    Category,
    Product,
    RechargeCode,
    CategoryIn,
    ProductIn,
    OrderUpdate,
    RechargeBatchRequest,
    UserBlockUpdate,
)

APP_TITLE = "Recharge Store Admin API"
SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24))
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/")

ALLOWED_IMAGE_TYPES = ("image/jpeg", "image/png", "image/webp", "image/gif")
MAX_UPLOAD_BYTES = 5 * 1024 * 1024
MAX_BATCH_SIZE = 500
MAX_EXPIRES_DAYS = 3650

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)
log_connection_status()

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

app = FastAPI(title=APP_TITLE)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Image bucket lives under the uploads directory and is served as static files
UPLOAD_DIR = os.getenv("UPLOAD_DIR", os.path.join(os.getcwd(), "uploads"))
IMAGE_BUCKET = "products"
os.makedirs(os.path.join(UPLOAD_DIR, IMAGE_BUCKET), exist_ok=True)
app.mount("/uploads", StaticFiles(directory=UPLOAD_DIR), name="uploads")


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.info("[%s %s] invalid request: %s", request.method, request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"detail": "بيانات غير صالحة"})


# ---------- Helpers ----------

def get_db():
    if db is None:
        raise HTTPException(status_code=500, detail="قاعدة البيانات غير متاحة")
    return db


def internal_error(where: str, exc: Exception, fallback: str) -> HTTPException:
    """Log a failure and turn it into a 500; storage messages are passed through."""
    if isinstance(exc, PyMongoError):
        logger.error("%s %s", where, exc)
        return HTTPException(status_code=500, detail=str(exc))
    logger.exception("%s unexpected: %s", where, exc)
    return HTTPException(status_code=500, detail=fallback)


def to_object_id(value: Optional[str]) -> Optional[ObjectId]:
    if value and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def serialize_doc(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return doc
    doc = dict(doc)
    if "_id" in doc:
        doc["id"] = str(doc.pop("_id"))
    for k, v in list(doc.items()):
        if isinstance(v, datetime):
            doc[k] = v.isoformat()
        elif isinstance(v, ObjectId):
            doc[k] = str(v)
    return doc


def page_window(page: int, limit: int, maximum: int) -> Tuple[int, int, int]:
    """Clamp page/limit and return (page, limit, skip)."""
    page = max(1, page)
    limit = min(maximum, max(1, limit))
    return page, limit, (page - 1) * limit


def contains(text: str) -> Dict[str, str]:
    # Case-insensitive literal substring match
    return {"$regex": re.escape(text), "$options": "i"}


def clean_text(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


# ---------- Auth helpers ----------

def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def get_user_by_email(email: str) -> Optional[dict]:
    return get_db()["authuser"].find_one({"email": email})


def get_current_user(authorization: Optional[str] = Header(default=None)) -> dict:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="غير مصرح")
    token = authorization.split(" ", 1)[1]
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise HTTPException(status_code=401, detail="رمز الدخول غير صالح")
    sub = payload.get("sub")
    if not sub:
        raise HTTPException(status_code=401, detail="رمز الدخول غير صالح")
    user = get_user_by_email(sub)
    if not user:
        raise HTTPException(status_code=401, detail="المستخدم غير موجود")
    return user


def get_current_admin(user: dict = Depends(get_current_user)) -> dict:
    if (user.get("role") or "").lower() != "admin":
        raise HTTPException(status_code=403, detail="للمشرفين فقط")
    return user


@app.get("/")
def read_root():
    return {"message": f"{APP_TITLE} is running"}


# ---------- Auth Endpoints ----------
@app.post("/auth/login")
def login(email: str = Form(...), password: str = Form(...)):
    user = get_user_by_email(email)
    if not user or not verify_password(password, user.get("password_hash", "")):
        raise HTTPException(status_code=401, detail="البريد الإلكتروني أو كلمة المرور غير صحيحة")
    if (user.get("role") or "").lower() != "admin":
        raise HTTPException(status_code=403, detail="للمشرفين فقط")
    token = create_access_token({"sub": user["email"], "role": "admin"})
    return {
        "access_token": token,
        "token_type": "bearer",
        "user": {"email": user["email"], "name": user.get("name"), "role": "admin"},
    }


@app.get("/me")
def me(admin: dict = Depends(get_current_admin)):
    return {"email": admin["email"], "name": admin.get("name"), "role": admin.get("role")}


# ---------- Categories ----------

def build_category(body: CategoryIn) -> Category:
    name = clean_text(body.name)
    if not name:
        raise HTTPException(status_code=400, detail="الاسم مطلوب")
    return Category(
        name=name,
        description=clean_text(body.description),
        icon=body.icon or "Package",
        sort_order=body.sort_order if body.sort_order is not None else 0,
        is_active=body.is_active if body.is_active is not None else True,
    )


@app.get("/categories")
def list_categories(admin: dict = Depends(get_current_admin)):
    try:
        get_db()
        cats = get_documents("categories", sort=[("sort_order", 1)])
        return [serialize_doc(c) for c in cats]
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error("[GET /categories]", e, "خطأ غير متوقع")


@app.post("/categories", status_code=201)
def create_category(body: CategoryIn, admin: dict = Depends(get_current_admin)):
    try:
        category = build_category(body)
        inserted_id = create_document("categories", category)
        return serialize_doc(get_db()["categories"].find_one({"_id": ObjectId(inserted_id)}))
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error("[POST /categories]", e, "فشل إنشاء الفئة")


@app.get("/categories/{category_id}")
def get_category(category_id: str, admin: dict = Depends(get_current_admin)):
    try:
        oid = to_object_id(category_id)
        doc = get_db()["categories"].find_one({"_id": oid}) if oid else None
        if not doc:
            raise HTTPException(status_code=404, detail="الفئة غير موجودة")
        return serialize_doc(doc)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error(f"[GET /categories/{category_id}]", e, "خطأ غير متوقع")


@app.put("/categories/{category_id}")
def update_category(category_id: str, body: CategoryIn, admin: dict = Depends(get_current_admin)):
    try:
        category = build_category(body)
        oid = to_object_id(category_id)
        doc = None
        if oid:
            doc = get_db()["categories"].find_one_and_update(
                {"_id": oid},
                {"$set": {**category.model_dump(), "updated_at": datetime.now(timezone.utc)}},
                return_document=ReturnDocument.AFTER,
            )
        if not doc:
            raise HTTPException(status_code=404, detail="الفئة غير موجودة")
        return serialize_doc(doc)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error(f"[PUT /categories/{category_id}]", e, "فشل تحديث الفئة")


@app.delete("/categories/{category_id}")
def delete_category(category_id: str, admin: dict = Depends(get_current_admin)):
    try:
        database = get_db()
        count = database["products"].count_documents({"category_id": category_id})
        if count > 0:
            raise HTTPException(status_code=400, detail=f"لا يمكن حذف الفئة - تحتوي على {count} منتج")
        oid = to_object_id(category_id)
        deleted = database["categories"].delete_one({"_id": oid}).deleted_count if oid else 0
        if not deleted:
            raise HTTPException(status_code=404, detail="الفئة غير موجودة")
        return {"success": True}
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error(f"[DELETE /categories/{category_id}]", e, "فشل حذف الفئة")


# ---------- Products ----------

def build_product(body: ProductIn) -> Product:
    name = clean_text(body.name)
    if not name:
        raise HTTPException(status_code=400, detail="اسم المنتج مطلوب")
    if not body.category_id:
        raise HTTPException(status_code=400, detail="الفئة مطلوبة")
    if body.price is None or body.price <= 0:
        raise HTTPException(status_code=400, detail="السعر يجب أن يكون أكبر من صفر")
    oid = to_object_id(body.category_id)
    if not oid or get_db()["categories"].count_documents({"_id": oid}) == 0:
        raise HTTPException(status_code=400, detail="الفئة غير موجودة")
    return Product(
        category_id=body.category_id,
        name=name,
        description=clean_text(body.description),
        price=body.price,
        currency=body.currency or "IQD",
        image_url=body.image_url or None,
        icon=body.icon or "Package",
        filter_tag=clean_text(body.filter_tag),
        is_active=body.is_active if body.is_active is not None else True,
    )


def attach_categories(products: List[dict]) -> List[dict]:
    """Add categories: {name} to each product, like the storefront join."""
    oids = [oid for oid in (to_object_id(p.get("category_id")) for p in products) if oid]
    names = {}
    if oids:
        for c in get_db()["categories"].find({"_id": {"$in": oids}}, {"name": 1}):
            names[str(c["_id"])] = c.get("name")
    for p in products:
        cid = p.get("category_id")
        p["categories"] = {"name": names[cid]} if cid in names else None
    return products


@app.get("/products")
def list_products(
    page: int = 1,
    limit: int = 20,
    search: Optional[str] = None,
    category_id: Optional[str] = None,
    admin: dict = Depends(get_current_admin),
):
    try:
        page, limit, skip = page_window(page, limit, 100)
        query: Dict[str, Any] = {}
        if search:
            query["name"] = contains(search)
        if category_id:
            query["category_id"] = category_id
        collection = get_db()["products"]
        total = collection.count_documents(query)
        docs = collection.find(query).sort("created_at", -1).skip(skip).limit(limit)
        items = attach_categories([serialize_doc(d) for d in docs])
        return {"data": items, "total": total, "page": page, "limit": limit}
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error("[GET /products]", e, "خطأ غير متوقع")


@app.post("/products", status_code=201)
def create_product(body: ProductIn, admin: dict = Depends(get_current_admin)):
    try:
        product = build_product(body)
        inserted_id = create_document("products", product)
        return serialize_doc(get_db()["products"].find_one({"_id": ObjectId(inserted_id)}))
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error("[POST /products]", e, "فشل إنشاء المنتج")


# Declared before /products/{product_id} so "filters" is not taken as an id
@app.get("/products/filters")
def list_filter_tags(category_id: Optional[str] = None, admin: dict = Depends(get_current_admin)):
    try:
        query: Dict[str, Any] = {"filter_tag": {"$nin": [None, ""]}}
        if category_id:
            query["category_id"] = category_id
        tags = get_db()["products"].distinct("filter_tag", query)
        return sorted({t for t in tags if t})
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error("[GET /products/filters]", e, "خطأ غير متوقع")


@app.get("/products/{product_id}")
def get_product(product_id: str, admin: dict = Depends(get_current_admin)):
    try:
        oid = to_object_id(product_id)
        doc = get_db()["products"].find_one({"_id": oid}) if oid else None
        if not doc:
            raise HTTPException(status_code=404, detail="المنتج غير موجود")
        return attach_categories([serialize_doc(doc)])[0]
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error(f"[GET /products/{product_id}]", e, "خطأ غير متوقع")


@app.put("/products/{product_id}")
def update_product(product_id: str, body: ProductIn, admin: dict = Depends(get_current_admin)):
    try:
        product = build_product(body)
        oid = to_object_id(product_id)
        doc = None
        if oid:
            doc = get_db()["products"].find_one_and_update(
                {"_id": oid},
                {"$set": {**product.model_dump(), "updated_at": datetime.now(timezone.utc)}},
                return_document=ReturnDocument.AFTER,
            )
        if not doc:
            raise HTTPException(status_code=404, detail="المنتج غير موجود")
        return serialize_doc(doc)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error(f"[PUT /products/{product_id}]", e, "فشل تحديث المنتج")


@app.delete("/products/{product_id}")
def delete_product(product_id: str, admin: dict = Depends(get_current_admin)):
    try:
        oid = to_object_id(product_id)
        deleted = get_db()["products"].delete_one({"_id": oid}).deleted_count if oid else 0
        if not deleted:
            raise HTTPException(status_code=404, detail="المنتج غير موجود")
        return {"success": True}
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error(f"[DELETE /products/{product_id}]", e, "فشل حذف المنتج")


# ---------- Image upload ----------
@app.post("/upload", status_code=201)
def upload_image(file: Optional[UploadFile] = File(None), admin: dict = Depends(get_current_admin)):
    if file is None:
        raise HTTPException(status_code=400, detail="لا يوجد ملف")
    if file.content_type not in ALLOWED_IMAGE_TYPES:
        raise HTTPException(status_code=400, detail="نوع الملف غير مدعوم. استخدم PNG, JPG, WebP, أو GIF")
    try:
        data = file.file.read(MAX_UPLOAD_BYTES + 1)
        if len(data) > MAX_UPLOAD_BYTES:
            raise HTTPException(status_code=400, detail="حجم الملف كبير جداً. الحد الأقصى 5 ميجابايت")
        ext = os.path.splitext(file.filename or "")[1].lstrip(".") or "jpg"
        fname = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:10]}.{ext}"
        bucket_dir = os.path.join(UPLOAD_DIR, IMAGE_BUCKET)
        os.makedirs(bucket_dir, exist_ok=True)
        with open(os.path.join(bucket_dir, fname), "wb") as f:
            f.write(data)
        return {"url": f"{PUBLIC_BASE_URL}/uploads/{IMAGE_BUCKET}/{fname}"}
    except HTTPException:
        raise
    except OSError as e:
        logger.error("[POST /upload] %s", e)
        raise HTTPException(status_code=500, detail=str(e))
    except Exception as e:
        raise internal_error("[POST /upload]", e, "فشل رفع الصورة")


# ---------- Orders ----------

def fetch_orders(status: Optional[str], skip: int, limit: int) -> Tuple[List[dict], int]:
    query = {"status": status} if status else {}
    collection = get_db()["orders"]
    total = collection.count_documents(query)
    docs = collection.find(query).sort("created_at", -1).skip(skip).limit(limit)
    return [serialize_doc(d) for d in docs], total


def attach_profiles(orders: List[dict]) -> List[dict]:
    """Add profiles: {full_name, phone} from the profiles collection to each order."""
    oids = [oid for oid in (to_object_id(o.get("user_id")) for o in orders) if oid]
    profiles = {}
    if oids:
        for p in get_db()["profiles"].find({"_id": {"$in": oids}}, {"full_name": 1, "phone": 1}):
            profiles[str(p["_id"])] = {"full_name": p.get("full_name"), "phone": p.get("phone")}
    for o in orders:
        o["profiles"] = profiles.get(o.get("user_id"))
    return orders


def with_profiles(orders: List[dict], where: str) -> List[dict]:
    # A failed profile lookup degrades to the plain order rows
    try:
        return attach_profiles(orders)
    except PyMongoError as e:
        logger.warning("%s profile join failed, returning orders without profiles: %s", where, e)
        return orders


@app.get("/orders")
def list_orders(
    page: int = 1,
    limit: int = 50,
    status: Optional[str] = None,
    admin: dict = Depends(get_current_admin),
):
    try:
        page, limit, skip = page_window(page, limit, 100)
        orders, total = fetch_orders(status, skip, limit)
        return {"data": with_profiles(orders, "[GET /orders]"), "total": total}
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error("[GET /orders]", e, "خطأ في جلب الطلبات")


@app.patch("/orders")
def update_order(body: OrderUpdate, admin: dict = Depends(get_current_admin)):
    if not body.id:
        raise HTTPException(status_code=400, detail="معرف الطلب مطلوب")

    update_data: Dict[str, Any] = {}
    if body.status is not None:
        if body.status not in ORDER_STATUSES:
            raise HTTPException(status_code=400, detail="حالة غير صالحة")
        update_data["status"] = body.status
    # admin_reply may be cleared with an explicit null
    if "admin_reply" in body.model_fields_set:
        update_data["admin_reply"] = body.admin_reply
    if not update_data:
        raise HTTPException(status_code=400, detail="لا توجد بيانات للتحديث")
    update_data["updated_at"] = datetime.now(timezone.utc)

    try:
        oid = to_object_id(body.id)
        doc = None
        if oid:
            doc = get_db()["orders"].find_one_and_update(
                {"_id": oid}, {"$set": update_data}, return_document=ReturnDocument.AFTER
            )
        if not doc:
            raise HTTPException(status_code=404, detail="الطلب غير موجود")
        return with_profiles([serialize_doc(doc)], "[PATCH /orders]")[0]
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error("[PATCH /orders]", e, "فشل تحديث الطلب")


@app.delete("/orders")
def delete_order(id: Optional[str] = None, admin: dict = Depends(get_current_admin)):
    if not id:
        raise HTTPException(status_code=400, detail="معرف الطلب مطلوب")
    try:
        oid = to_object_id(id)
        deleted = get_db()["orders"].delete_one({"_id": oid}).deleted_count if oid else 0
        if not deleted:
            raise HTTPException(status_code=404, detail="الطلب غير موجود")
        return {"success": True, "id": id}
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error("[DELETE /orders]", e, "فشل حذف الطلب")


# ---------- Recharge codes ----------
RECHARGE_CODE_FIELDS = {
    "code_hash": 1, "amount": 1, "is_used": 1, "used_by": 1, "used_at": 1,
    "batch_id": 1, "expires_at": 1, "created_at": 1,
}


@app.get("/recharge-codes")
def list_recharge_codes(
    page: int = 1,
    limit: int = 50,
    batch: Optional[str] = None,
    status: Optional[str] = None,
    admin: dict = Depends(get_current_admin),
):
    try:
        page, limit, skip = page_window(page, limit, 100)
        query: Dict[str, Any] = {}
        if batch:
            query["batch_id"] = batch
        if status == "used":
            query["is_used"] = True
        elif status == "unused":
            query["is_used"] = False
        collection = get_db()["recharge_codes"]
        total = collection.count_documents(query)
        docs = collection.find(query, RECHARGE_CODE_FIELDS).sort("created_at", -1).skip(skip).limit(limit)
        return {"data": [serialize_doc(d) for d in docs], "total": total}
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error("[GET /recharge-codes]", e, "خطأ في جلب الرموز")


@app.post("/recharge-codes")
def issue_recharge_batch(body: RechargeBatchRequest, admin: dict = Depends(get_current_admin)):
    amount = body.amount
    if amount is None or amount <= 0:
        raise HTTPException(status_code=400, detail="المبلغ يجب أن يكون أكبر من صفر")
    count = body.count
    if count is None or count != int(count) or not 1 <= count <= MAX_BATCH_SIZE:
        raise HTTPException(status_code=400, detail=f"العدد يجب أن يكون بين 1 و {MAX_BATCH_SIZE}")
    count = int(count)
    if body.expires_days is not None and not 0 <= body.expires_days <= MAX_EXPIRES_DAYS:
        raise HTTPException(status_code=400, detail="مدة الصلاحية غير صالحة")

    try:
        database = get_db()
        batch_id = str(uuid.uuid4())
        now = datetime.now(timezone.utc)
        expires_at = now + timedelta(days=body.expires_days) if body.expires_days else None

        codes = generate_codes(count)
        records = []
        for code in codes:
            row = RechargeCode(code_hash=hash_code(code), amount=amount, batch_id=batch_id, expires_at=expires_at)
            records.append({**row.model_dump(), "created_at": now})
        database["recharge_codes"].insert_many(records)
        logger.info("Issued recharge batch %s: %d codes of %s", batch_id, count, amount)

        return {
            "batch_id": batch_id,
            "codes": codes,
            "amount": amount,
            "count": len(codes),
            "expires_at": expires_at.isoformat() if expires_at else None,
        }
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error("[POST /recharge-codes]", e, "فشل توليد الرموز")


# ---------- Users ----------
PROFILE_FIELDS = {
    "full_name": 1, "phone": 1, "avatar_url": 1, "wallet_balance": 1, "is_blocked": 1, "created_at": 1,
}


def list_identity_emails(user_ids: List[str]) -> Dict[str, str]:
    """Map profile ids to emails from the identity store."""
    oids = [oid for oid in (to_object_id(u) for u in user_ids) if oid]
    if not oids:
        return {}
    users = get_db()["authuser"].find({"_id": {"$in": oids}}, {"email": 1})
    return {str(u["_id"]): u.get("email") or "" for u in users}


@app.get("/users")
def list_users(
    page: int = 1,
    limit: int = 20,
    search: Optional[str] = None,
    admin: dict = Depends(get_current_admin),
):
    try:
        page, limit, skip = page_window(page, limit, 50)
        search = (search or "").strip()
        query: Dict[str, Any] = {}
        if search:
            query["$or"] = [{"full_name": contains(search)}, {"phone": contains(search)}]
        collection = get_db()["profiles"]
        total = collection.count_documents(query)
        docs = collection.find(query, PROFILE_FIELDS).sort("created_at", -1).skip(skip).limit(limit)
        users = [serialize_doc(d) for d in docs]

        emails: Dict[str, str] = {}
        if users:
            try:
                emails = list_identity_emails([u["id"] for u in users])
            except Exception as e:
                logger.warning("[GET /users] email lookup failed: %s", e)
        for u in users:
            u["email"] = emails.get(u["id"], "")

        return {"data": users, "total": total, "page": page, "limit": limit}
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error("[GET /users]", e, "خطأ في جلب المستخدمين")


@app.patch("/users")
def set_user_blocked(body: UserBlockUpdate, admin: dict = Depends(get_current_admin)):
    if not body.id:
        raise HTTPException(status_code=400, detail="معرف المستخدم مطلوب")
    if not isinstance(body.is_blocked, bool):
        raise HTTPException(status_code=400, detail="قيمة الحظر غير صالحة")
    try:
        oid = to_object_id(body.id)
        doc = None
        if oid:
            doc = get_db()["profiles"].find_one_and_update(
                {"_id": oid},
                {"$set": {"is_blocked": body.is_blocked, "updated_at": datetime.now(timezone.utc)}},
                projection={"full_name": 1, "is_blocked": 1},
                return_document=ReturnDocument.AFTER,
            )
        if not doc:
            raise HTTPException(status_code=404, detail="المستخدم غير موجود")
        return serialize_doc(doc)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error("[PATCH /users]", e, "خطأ في تحديث المستخدم")


@app.get("/users/count")
def count_users(admin: dict = Depends(get_current_admin)):
    try:
        return {"count": get_db()["profiles"].count_documents({})}
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error("[GET /users/count]", e, "Failed to fetch user count")


# ---------- Dashboard ----------
@app.get("/stats")
def dashboard_stats(admin: dict = Depends(get_current_admin)):
    try:
        database = get_db()
        return {
            "categories": database["categories"].count_documents({}),
            "products": database["products"].count_documents({}),
            "orders": database["orders"].count_documents({}),
            "users": database["profiles"].count_documents({}),
            "rechargeCodes": database["recharge_codes"].count_documents({}),
        }
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error("[GET /stats]", e, "خطأ في جلب الإحصائيات")


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "service_url": "✅ Set" if write_enabled else "⚠️ Not Set (anonymous writes)",
        "database_name": "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": [],
    }
    try:
        if db is not None:
            response["database"] = "✅ Available"
            try:
                response["collections"] = db.list_collection_names()[:10]
                response["database"] = "✅ Connected & Working"
                response["connection_status"] = "Connected"
            except Exception as e:
                response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
        else:
            response["database"] = "⚠️  Available but not initialized"
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:50]}"
    return response


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
