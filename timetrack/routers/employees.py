from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from timetrack.audit import audit_request
from timetrack.db import get_db
from timetrack.schemas import (
    ActionResponse,
    EmployeeCreate,
    EmployeeListResponse,
    EmployeeRead,
    EmployeeStatusUpdate,
    EmployeeUpdate,
)
from timetrack.security import EmployerContext, require_employer_company
from timetrack.services.employees import (
    create_employee,
    delete_employee,
    get_company_employee,
    list_active_employees,
    set_employee_active,
    update_employee,
)

router = APIRouter(tags=["employees"])


@router.post("/employees", response_model=EmployeeRead, status_code=status.HTTP_201_CREATED)
def create_employee_endpoint(
    payload: EmployeeCreate,
    request: Request,
    context: EmployerContext = Depends(require_employer_company),
    db: Session = Depends(get_db),
) -> EmployeeRead:
    employee = create_employee(db, company_id=context.company_id, payload=payload)
    audit_request(db, request, action="EMPLOYEE_CREATED", entity_type="employee_profile", entity_id=str(employee.id))
    return EmployeeRead.model_validate(employee)


@router.get("/employees", response_model=EmployeeListResponse)
def list_employees_endpoint(
    context: EmployerContext = Depends(require_employer_company),
    db: Session = Depends(get_db),
) -> EmployeeListResponse:
    employees = list_active_employees(db, company_id=context.company_id)
    return EmployeeListResponse(employees=[EmployeeRead.model_validate(item) for item in employees])


@router.get("/employees/{employee_id}", response_model=EmployeeRead)
def get_employee_endpoint(
    employee_id: int,
    context: EmployerContext = Depends(require_employer_company),
    db: Session = Depends(get_db),
) -> EmployeeRead:
    return EmployeeRead.model_validate(
        get_company_employee(db, company_id=context.company_id, employee_id=employee_id)
    )


@router.patch("/employees/{employee_id}", response_model=EmployeeRead)
def update_employee_endpoint(
    employee_id: int,
    payload: EmployeeUpdate,
    request: Request,
    context: EmployerContext = Depends(require_employer_company),
    db: Session = Depends(get_db),
) -> EmployeeRead:
    employee = update_employee(db, company_id=context.company_id, employee_id=employee_id, payload=payload)
    audit_request(db, request, action="EMPLOYEE_UPDATED", entity_type="employee_profile", entity_id=str(employee.id))
    return EmployeeRead.model_validate(employee)


@router.post("/employees/{employee_id}/status", response_model=EmployeeRead)
def update_employee_status_endpoint(
    employee_id: int,
    payload: EmployeeStatusUpdate,
    request: Request,
    context: EmployerContext = Depends(require_employer_company),
    db: Session = Depends(get_db),
) -> EmployeeRead:
    employee = set_employee_active(
        db,
        company_id=context.company_id,
        employee_id=employee_id,
        is_active=payload.is_active,
    )
    audit_request(
        db,
        request,
        action="EMPLOYEE_ACTIVATED" if employee.is_active else "EMPLOYEE_DEACTIVATED",
        entity_type="employee_profile",
        entity_id=str(employee.id),
    )
    return EmployeeRead.model_validate(employee)


@router.delete("/employees/{employee_id}", response_model=ActionResponse)
def delete_employee_endpoint(
    employee_id: int,
    request: Request,
    context: EmployerContext = Depends(require_employer_company),
    db: Session = Depends(get_db),
) -> ActionResponse:
    delete_employee(db, company_id=context.company_id, employee_id=employee_id)
    audit_request(db, request, action="EMPLOYEE_DELETED", entity_type="employee_profile", entity_id=str(employee_id))
    return ActionResponse(success=True, message="Employee deleted successfully")
