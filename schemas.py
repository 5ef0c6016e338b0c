"""
Database Schemas for the administration suite (MongoDB via Pydantic models)
Each create model represents a collection; collection name is the lowercase of class name.
Update models carry the same fields, all optional; only supplied fields are written.
"""

import datetime
from typing import Literal, Optional, Type

from pydantic import BaseModel, ConfigDict, EmailStr, Field

Priority = Literal["Low", "Medium", "High"]
TaskStatus = Literal["Pending", "In Progress", "Done"]


class Record(BaseModel):
    # Form inputs arrive as strings; numbers typed into text fields stay valid
    model_config = ConfigDict(str_strip_whitespace=True, coerce_numbers_to_str=True)


def collection_name(model: Type[BaseModel]) -> str:
    return model.__name__.lower()


# Students
class Student(Record):
    name: str = Field(..., min_length=1)
    email: EmailStr
    course: str = Field(..., min_length=1)
    batch: str = Field(..., min_length=1)
    grade: str = Field(..., min_length=1)


class StudentUpdate(Record):
    name: Optional[str] = Field(None, min_length=1)
    email: Optional[EmailStr] = None
    course: Optional[str] = Field(None, min_length=1)
    batch: Optional[str] = Field(None, min_length=1)
    grade: Optional[str] = Field(None, min_length=1)


# Employees
class Employee(Record):
    name: str = Field(..., min_length=1)
    email: EmailStr
    position: str = Field(..., min_length=1)
    department: str = Field(..., min_length=1)
    salary: float = Field(..., ge=0)


class EmployeeUpdate(Record):
    name: Optional[str] = Field(None, min_length=1)
    email: Optional[EmailStr] = None
    position: Optional[str] = Field(None, min_length=1)
    department: Optional[str] = Field(None, min_length=1)
    salary: Optional[float] = Field(None, ge=0)


# Tasks
class Task(Record):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    priority: Priority = "Low"
    status: TaskStatus = "Pending"


class TaskUpdate(Record):
    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    priority: Optional[Priority] = None
    status: Optional[TaskStatus] = None


# Expenses
class Expense(Record):
    title: str = Field(..., min_length=1)
    amount: float = Field(..., ge=0)
    category: str = Field(..., min_length=1)
    date: datetime.date


class ExpenseUpdate(Record):
    title: Optional[str] = Field(None, min_length=1)
    amount: Optional[float] = Field(None, ge=0)
    category: Optional[str] = Field(None, min_length=1)
    date: Optional[datetime.date] = None


# Products
class Product(Record):
    productName: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    quantity: int = Field(..., ge=0)
    category: str = Field(..., min_length=1)


class ProductUpdate(Record):
    productName: Optional[str] = Field(None, min_length=1)
    price: Optional[float] = Field(None, ge=0)
    quantity: Optional[int] = Field(None, ge=0)
    category: Optional[str] = Field(None, min_length=1)


# Core Users
class User(BaseModel):
    name: str = Field(..., description="Full name")
    email: EmailStr
    password: str = Field(..., description="bcrypt password hash")


class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str = Field(min_length=6)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class PublicUser(BaseModel):
    id: str
    name: str
    email: EmailStr
