"""
CompanyProfile: the consolidated, structured view of one startup.

Built from the consolidation LLM response. Numbers default to 0, lists to []
and strings to "" so that missing data never reaches the scorer as None.
"""

import json
from typing import Annotated, Any, Dict, List

from pydantic import BeforeValidator, Field

from .base import (
    LenientBool,
    LenientFloat,
    LenientInt,
    LenientModel,
    LenientStr,
    LenientStrList,
    coerce_dict_list,
)

# Top-level keys as they appear in the consolidation JSON
PROFILE_SECTIONS = (
    "companyOverview",
    "founders",
    "businessModel",
    "financials",
    "market",
    "product",
    "traction",
    "funding",
    "risks",
)


class CompanyOverview(LenientModel):
    name: LenientStr = ""
    industry: LenientStr = ""
    stage: LenientStr = ""
    location: LenientStr = ""
    description: LenientStr = ""
    website: LenientStr = ""
    founded_year: LenientInt = 0


class Founder(LenientModel):
    name: LenientStr = ""
    role: LenientStr = ""
    background: LenientStr = ""
    experience: LenientStr = ""
    education: LenientStr = ""


class BusinessModel(LenientModel):
    type: LenientStr = ""
    revenue_streams: LenientStrList = Field(default_factory=list)
    target_market: LenientStr = ""
    value_proposition: LenientStr = ""


class Financials(LenientModel):
    current_revenue: LenientFloat = 0
    projected_revenue: LenientFloat = 0
    revenue_growth_rate: LenientFloat = 0
    gross_margin: LenientFloat = 0
    burn_rate: LenientFloat = 0
    runway: LenientFloat = 0
    cash_raised: LenientFloat = 0
    funding_round: LenientStr = ""
    employees: LenientInt = 0
    customers: LenientInt = 0


class Market(LenientModel):
    tam: LenientFloat = 0
    sam: LenientFloat = 0
    som: LenientFloat = 0
    market_size: LenientStr = ""
    growth_rate: LenientFloat = 0
    competitors: LenientStrList = Field(default_factory=list)
    market_trends: LenientStrList = Field(default_factory=list)


class Product(LenientModel):
    description: LenientStr = ""
    stage: LenientStr = ""
    features: LenientStrList = Field(default_factory=list)
    technology: LenientStr = ""
    differentiators: LenientStrList = Field(default_factory=list)


class Milestone(LenientModel):
    description: LenientStr = ""
    date: LenientStr = ""
    achieved: LenientBool = False


class Traction(LenientModel):
    customers: LenientInt = 0
    revenue: LenientFloat = 0
    partnerships: LenientStrList = Field(default_factory=list)
    milestones: Annotated[List[Milestone], BeforeValidator(coerce_dict_list)] = Field(default_factory=list)


class UseOfFunds(LenientModel):
    category: LenientStr = ""
    percentage: LenientFloat = 0
    description: LenientStr = ""


class Funding(LenientModel):
    seeking: LenientFloat = 0
    valuation: LenientFloat = 0
    use_of_funds: Annotated[List[UseOfFunds], BeforeValidator(coerce_dict_list)] = Field(default_factory=list)


class Risk(LenientModel):
    category: LenientStr = ""
    description: LenientStr = ""
    severity: LenientStr = ""
    mitigation: LenientStr = ""


class CompanyProfile(LenientModel):
    company_overview: CompanyOverview = Field(default_factory=CompanyOverview)
    founders: Annotated[List[Founder], BeforeValidator(coerce_dict_list)] = Field(default_factory=list)
    business_model: BusinessModel = Field(default_factory=BusinessModel)
    financials: Financials = Field(default_factory=Financials)
    market: Market = Field(default_factory=Market)
    product: Product = Field(default_factory=Product)
    traction: Traction = Field(default_factory=Traction)
    funding: Funding = Field(default_factory=Funding)
    risks: Annotated[List[Risk], BeforeValidator(coerce_dict_list)] = Field(default_factory=list)

    @property
    def company_name(self) -> str:
        return self.company_overview.name or "Unknown Company"

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)

    def to_prompt_json(self) -> str:
        return json.dumps(self.to_dict(), indent=2, ensure_ascii=False)
