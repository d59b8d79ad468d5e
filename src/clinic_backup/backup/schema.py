"""Entity schema of the dental clinic database.

Declares every table the backup covers, the foreign keys between them,
and which collections each manifest format version carries.
"""

from clinic_backup.backup.models import BackupSchema, EntityDef, FormatVersion

REQUIRED_ENTITIES = [
    "patients",
    "medicalHistories",
    "teeth",
    "appointments",
    "treatments",
    "invoices",
]

# Present since the first format version
_V1_OPTIONAL = [
    "users",
    "toothConditionHistories",
    "toothSurfaces",
    "invoiceItems",
    "payments",
    "patientImages",
    "auditLogs",
]

# Added with inventory, procedure catalog and recalls
_V3_OPTIONAL = [
    "supplies",
    "stockTransactions",
    "procedureCatalog",
    "procedureSupplies",
    "recallSchedules",
]

CLINIC_SCHEMA = BackupSchema(
    entities=[
        # Password hashes never leave the database; users are not restored
        EntityDef(
            name="users",
            table="users",
            columns=[
                "id", "email", "firstName", "lastName", "role",
                "phone", "isActive", "createdAt", "updatedAt",
            ],
            restore=False,
            summary=True,
        ),
        EntityDef(name="patients", table="patients", summary=True),
        EntityDef(name="medicalHistories", table="medical_histories", depends_on=["patients"]),
        EntityDef(name="teeth", table="teeth", depends_on=["patients"]),
        EntityDef(name="toothConditionHistories", table="tooth_condition_histories", depends_on=["teeth"]),
        EntityDef(name="toothSurfaces", table="tooth_surfaces", depends_on=["teeth"]),
        EntityDef(name="appointments", table="appointments", depends_on=["patients", "users"], summary=True),
        EntityDef(
            name="treatments",
            table="treatments",
            depends_on=["patients", "users", "appointments"],
            summary=True,
        ),
        EntityDef(name="invoices", table="invoices", depends_on=["patients"], summary=True),
        EntityDef(name="invoiceItems", table="invoice_items", depends_on=["invoices", "treatments"]),
        EntityDef(name="payments", table="payments", depends_on=["invoices"]),
        EntityDef(
            name="patientImages",
            table="patient_images",
            depends_on=["patients", "teeth", "users"],
            summary=True,
        ),
        EntityDef(name="supplies", table="supplies"),
        EntityDef(name="stockTransactions", table="stock_transactions", depends_on=["supplies"]),
        EntityDef(name="procedureCatalog", table="procedure_catalog"),
        EntityDef(
            name="procedureSupplies",
            table="procedure_supplies",
            depends_on=["procedureCatalog", "supplies"],
        ),
        EntityDef(name="recallSchedules", table="recall_schedules", depends_on=["patients"]),
        # Most recent 1000 entries only
        EntityDef(
            name="auditLogs",
            table="audit_logs",
            depends_on=["users"],
            order_by="createdAt",
            descending=True,
            limit=1000,
            restore=False,
        ),
    ],
    versions=[
        FormatVersion(
            version="1.0.0",
            required=REQUIRED_ENTITIES,
            optional=_V1_OPTIONAL,
            archive=False,
        ),
        FormatVersion(version="2.0.0", required=REQUIRED_ENTITIES, optional=_V1_OPTIONAL),
        FormatVersion(
            version="3.0.0",
            required=REQUIRED_ENTITIES,
            optional=[*_V1_OPTIONAL, *_V3_OPTIONAL],
        ),
    ],
    audit_table="audit_logs",
    json_columns=["oldValues", "newValues"],
    # DATETIME columns across the clinic tables
    timestamp_columns=[
        "createdAt", "updatedAt", "startTime", "endTime", "recurrenceEndDate",
        "recordedAt", "performedAt", "paidAt", "nextDueDate", "lastVisitDate",
        "lastDentalVisit", "expiryDate", "dueDate", "dateOfBirth",
    ],
)
