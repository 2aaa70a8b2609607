"""SQLAlchemy ORM models for persisted credit assessments"""

import uuid
from sqlalchemy import Column, String, Boolean, DateTime, Integer, Numeric, Text, JSON, Uuid, CheckConstraint
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class CreditAssessmentRecord(Base):
    """One credit assessment run; re-assessment inserts a new row"""

    __tablename__ = "credit_assessments"
    __table_args__ = (
        CheckConstraint("credit_score >= 0 AND credit_score <= 100", name="chk_credit_score"),
        CheckConstraint("risk_category IN ('LOW', 'MEDIUM', 'HIGH')", name="chk_risk_category"),
    )

    assessment_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    merchant_id = Column(String(100), nullable=False, index=True)
    assessment_date = Column(DateTime(timezone=True), nullable=False, index=True)
    rules_version = Column(String(50), nullable=False)

    # Financial metrics
    last_3_months_volume = Column(Numeric(15, 2), nullable=True)
    last_6_months_volume = Column(Numeric(15, 2), nullable=True)
    last_12_months_volume = Column(Numeric(15, 2), nullable=True)
    average_monthly_volume = Column(Numeric(15, 2), nullable=True)
    average_transaction_value = Column(Numeric(15, 2), nullable=True)
    transaction_count = Column(Integer, nullable=True)
    unique_customer_count = Column(Integer, nullable=True)

    # Performance metrics
    consistency_score = Column(Numeric(5, 2), nullable=True)
    growth_rate = Column(Numeric(10, 2), nullable=True)
    bounce_rate = Column(Numeric(5, 2), nullable=True)
    customer_concentration = Column(Numeric(5, 2), nullable=True)

    # Score
    credit_score = Column(Integer, nullable=False, index=True)
    risk_category = Column(String(20), nullable=False, index=True)

    # Eligibility
    is_eligible = Column(Boolean, nullable=False, default=False, index=True)
    eligible_loan_amount = Column(Numeric(15, 2), nullable=True)
    max_tenure_days = Column(Integer, nullable=True)
    recommended_interest_rate = Column(Numeric(5, 2), nullable=True)
    ineligibility_reason = Column(Text, nullable=True)

    # Audit detail
    component_scores = Column(JSON, nullable=True)
    failed_rules = Column(JSON, nullable=True)
    fraud_indicators = Column(JSON, nullable=True)
    warnings = Column(JSON, nullable=True)
    strengths = Column(JSON, nullable=True)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
