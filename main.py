import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.database import Database
from pymongo.errors import PyMongoError

import filters
import queries
from config import get_settings
from database import RecordStore, get_db, ping
from errors import AppError, ConflictError, StorageUnavailableError, UnauthorizedError
from logging_config import setup_logging
from schemas import (
    Employee, EmployeeUpdate, Expense, ExpenseUpdate, LoginRequest, Product, ProductUpdate,
    PublicUser, RegisterRequest, Student, StudentUpdate, Task, TaskUpdate, User, collection_name,
)
from security import (
    create_access_token, get_current_user, get_password_hash,
    require_auth_if_enabled, verify_password,
)

settings = get_settings()
setup_logging(settings.LOG_LEVEL, settings.LOG_JSON)
logger = logging.getLogger(__name__)

app = FastAPI(title="CRUD Administration Suite API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

api = APIRouter(prefix="/api")
records = APIRouter(prefix="/api", dependencies=[Depends(require_auth_if_enabled)])


def store_for(model):
    name = collection_name(model)

    def dependency(db: Database = Depends(get_db)) -> RecordStore:
        return RecordStore(db, name)

    return dependency


# ----------------------- Error Handlers -----------------------
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, UnauthorizedError) else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = {}
    for err in exc.errors():
        loc = [str(p) for p in err["loc"] if p not in ("body", "query", "path")]
        errors[".".join(loc) or "body"] = err["msg"]
    logger.info("Rejected %s %s: %s", request.method, request.url.path, errors)
    return JSONResponse(
        status_code=422,
        content={"message": "Validation failed", "code": "VALIDATION_ERROR", "errors": errors},
    )


@app.exception_handler(PyMongoError)
async def storage_error_handler(request: Request, exc: PyMongoError):
    logger.error("Storage failure on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content=StorageUnavailableError().to_dict())


# ----------------------- Health -----------------------
@app.get("/")
def read_root():
    return {"message": "CRUD Administration Suite API running"}


@app.get("/health")
def health(db: Database = Depends(get_db)):
    try:
        ping(db)
        database = "connected"
    except StorageUnavailableError:
        database = "unavailable"
    return {"ok": True, "database": database, "time": datetime.now(timezone.utc).isoformat()}


# ----------------------- Auth Endpoints -----------------------
def to_public_user(user) -> dict:
    """Only id, name and email ever leave the server."""
    return PublicUser(id=str(user["_id"]), name=user["name"], email=user["email"]).model_dump()


@api.post("/register", status_code=201)
def register(req: RegisterRequest, db: Database = Depends(get_db)):
    users = RecordStore(db, collection_name(User))
    if users.find_one({"email": str(req.email)}):
        raise ConflictError("Email already registered")
    try:
        user = users.insert({
            "name": req.name,
            "email": str(req.email),
            "password": get_password_hash(req.password),
        })
    except ConflictError:
        # A concurrent registration took the email first
        raise ConflictError("Email already registered")
    return {"message": "Registration successful", "user": to_public_user(user)}


@api.post("/login")
def login(payload: LoginRequest, db: Database = Depends(get_db)):
    user = RecordStore(db, collection_name(User)).find_one({"email": str(payload.email)})
    # Same answer for unknown email and wrong password
    if not user or not verify_password(payload.password, user.get("password", "")):
        logger.info("Failed login attempt")
        raise UnauthorizedError("Invalid email or password")
    token = create_access_token({"sub": user["_id"], "email": user["email"]})
    return {"message": "Login successful", "token": token, "user": to_public_user(user)}


@api.get("/profile", response_model=PublicUser)
def profile(current=Depends(get_current_user)):
    return to_public_user(current)


# ----------------------- Student Endpoints -----------------------
@records.post("/student", status_code=201)
def create_student(student: Student, store: RecordStore = Depends(store_for(Student))):
    return {"message": "Student is created", "newStudent": store.insert(student.model_dump(mode="json"))}


@records.get("/student")
def list_students(store: RecordStore = Depends(store_for(Student))):
    return {"students": store.list_all()}


@records.get("/student/{student_id}")
def get_student(student_id: str, store: RecordStore = Depends(store_for(Student))):
    return store.find_by_id(student_id)


@records.put("/student/{student_id}")
def update_student(student_id: str, payload: StudentUpdate, store: RecordStore = Depends(store_for(Student))):
    return store.replace(student_id, payload.model_dump(mode="json", exclude_none=True))


@records.delete("/student/{student_id}")
def delete_student(student_id: str, store: RecordStore = Depends(store_for(Student))):
    store.remove(student_id)
    return {"message": "Student deleted"}


# ----------------------- Employee Endpoints -----------------------
@records.post("/employee", status_code=201)
def create_employee(employee: Employee, store: RecordStore = Depends(store_for(Employee))):
    return {"message": "Employee is created", "newEmployee": store.insert(employee.model_dump(mode="json"))}


@records.get("/employee")
def list_employees(store: RecordStore = Depends(store_for(Employee))):
    return {"employees": store.list_all()}


@records.get("/employee/{employee_id}")
def get_employee(employee_id: str, store: RecordStore = Depends(store_for(Employee))):
    return store.find_by_id(employee_id)


@records.put("/employee/{employee_id}")
def update_employee(employee_id: str, payload: EmployeeUpdate, store: RecordStore = Depends(store_for(Employee))):
    return store.replace(employee_id, payload.model_dump(mode="json", exclude_none=True))


@records.delete("/employee/{employee_id}")
def delete_employee(employee_id: str, store: RecordStore = Depends(store_for(Employee))):
    store.remove(employee_id)
    return {"message": "Employee deleted"}


# ----------------------- Task Endpoints -----------------------
@records.post("/task", status_code=201)
def create_task(task: Task, store: RecordStore = Depends(store_for(Task))):
    return {"message": "Task is created", "newTask": store.insert(task.model_dump(mode="json"))}


@records.get("/task")
def list_tasks(store: RecordStore = Depends(store_for(Task))):
    return {"tasks": store.list_all()}


@records.get("/task/{task_id}")
def get_task(task_id: str, store: RecordStore = Depends(store_for(Task))):
    return store.find_by_id(task_id)


@records.put("/task/{task_id}")
def update_task(task_id: str, payload: TaskUpdate, store: RecordStore = Depends(store_for(Task))):
    return store.replace(task_id, payload.model_dump(mode="json", exclude_none=True))


@records.delete("/task/{task_id}")
def delete_task(task_id: str, store: RecordStore = Depends(store_for(Task))):
    store.remove(task_id)
    return {"message": "Task deleted"}


# ----------------------- Expense Endpoints -----------------------
@records.post("/expense", status_code=201)
def create_expense(expense: Expense, store: RecordStore = Depends(store_for(Expense))):
    return {"message": "Expense is created", "newExpense": store.insert(expense.model_dump(mode="json"))}


@records.get("/expense")
def list_expenses(
    category: Optional[str] = None,
    from_: Optional[str] = Query(None, alias="from"),
    to: Optional[str] = None,
    store: RecordStore = Depends(store_for(Expense)),
):
    flt = filters.parse_filter(filters.ExpenseFilter, category=category, from_date=from_, to_date=to)
    return {"expenses": queries.list_expenses(store, flt)}


@records.get("/expense/total")
def total_expenses(store: RecordStore = Depends(store_for(Expense))):
    return {"total": queries.expense_total(store)}


@records.get("/expense/{expense_id}")
def get_expense(expense_id: str, store: RecordStore = Depends(store_for(Expense))):
    return store.find_by_id(expense_id)


@records.put("/expense/{expense_id}")
def update_expense(expense_id: str, payload: ExpenseUpdate, store: RecordStore = Depends(store_for(Expense))):
    return store.replace(expense_id, payload.model_dump(mode="json", exclude_none=True))


@records.delete("/expense/{expense_id}")
def delete_expense(expense_id: str, store: RecordStore = Depends(store_for(Expense))):
    store.remove(expense_id)
    return {"message": "Expense deleted"}


# ----------------------- Product Endpoints -----------------------
@records.post("/product", status_code=201)
def create_product(product: Product, store: RecordStore = Depends(store_for(Product))):
    return {"message": "Product is created", "newProduct": store.insert(product.model_dump(mode="json"))}


@records.get("/product")
def list_products(
    search: Optional[str] = None,
    category: Optional[str] = None,
    sort: Optional[str] = None,
    store: RecordStore = Depends(store_for(Product)),
):
    flt = filters.parse_filter(filters.ProductFilter, search=search, category=category, sort=sort)
    return {"products": queries.list_products(store, flt)}


@records.get("/product/total")
def total_stock_value(store: RecordStore = Depends(store_for(Product))):
    return {"totalStockValue": queries.stock_value(store)}


@records.get("/product/{product_id}")
def get_product(product_id: str, store: RecordStore = Depends(store_for(Product))):
    return store.find_by_id(product_id)


@records.put("/product/{product_id}")
def update_product(product_id: str, payload: ProductUpdate, store: RecordStore = Depends(store_for(Product))):
    return store.replace(product_id, payload.model_dump(mode="json", exclude_none=True))


@records.delete("/product/{product_id}")
def delete_product(product_id: str, store: RecordStore = Depends(store_for(Product))):
    store.remove(product_id)
    return {"message": "Product deleted"}


app.include_router(api)
app.include_router(records)


def run():
    import uvicorn
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
