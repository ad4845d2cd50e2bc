"""Policy rule management API endpoints."""
from typing import List, Optional
from fastapi import APIRouter, Depends
from rule_adapter import schemas
from rule_adapter.api.deps import get_adapter
from rule_adapter.core.security import verify_admin_key
from rule_adapter.services.adapter import RuleAdapter
from rule_adapter.services.codec import section_of
from rule_adapter.services.policy_model import PolicyModel

router = APIRouter(prefix="/policies")


def _to_response(model: PolicyModel, is_filtered: bool, ptype: Optional[str] = None):
    rules = [
        schemas.RuleResponse(ptype=rule_type, values=values)
        for sec, rule_type in model.policy_types()
        if ptype is None or rule_type == ptype
        for values in model.get_policy(sec, rule_type)
    ]
    return schemas.PolicyListResponse(
        is_filtered=is_filtered,
        rules=rules,
        lines=[", ".join([rule.ptype] + rule.values) for rule in rules]
    )


@router.get("/", response_model=schemas.PolicyListResponse)
def list_rules_api(
    ptype: Optional[str] = None,
    adapter: RuleAdapter = Depends(get_adapter),
    verified: bool = Depends(verify_admin_key)
):
    """Load every stored rule, optionally only one rule type. Requires Admin API Key."""
    model = PolicyModel()
    adapter.load_policy(model)
    return _to_response(model, adapter.is_filtered, ptype)


@router.post("/filter", response_model=schemas.PolicyListResponse)
def filter_rules_api(
    policy_filter: schemas.PolicyFilter,
    adapter: RuleAdapter = Depends(get_adapter),
    verified: bool = Depends(verify_admin_key)
):
    """Load the rules selected by a sectioned filter. Requires Admin API Key."""
    model = PolicyModel()
    adapter.load_filtered_policy(model, policy_filter)
    return _to_response(model, adapter.is_filtered)


@router.post("/", response_model=schemas.RuleResponse)
def add_rule_api(
    rule: schemas.RuleCreate,
    adapter: RuleAdapter = Depends(get_adapter),
    verified: bool = Depends(verify_admin_key)
):
    """Persist one rule. Requires Admin API Key."""
    adapter.add_policy(section_of(rule.ptype), rule.ptype, rule.values)
    return schemas.RuleResponse(ptype=rule.ptype, values=rule.values)


@router.post("/batch", response_model=List[schemas.RuleResponse])
def add_rules_api(
    batch: schemas.RuleBatch,
    adapter: RuleAdapter = Depends(get_adapter),
    verified: bool = Depends(verify_admin_key)
):
    """Persist several rules of one type in a single commit. Requires Admin API Key."""
    adapter.add_policies(section_of(batch.ptype), batch.ptype, batch.rules)
    return [schemas.RuleResponse(ptype=batch.ptype, values=values) for values in batch.rules]


@router.post("/remove")
def remove_rule_api(
    rule: schemas.RuleCreate,
    adapter: RuleAdapter = Depends(get_adapter),
    verified: bool = Depends(verify_admin_key)
):
    """Delete every row equal to the rule. Requires Admin API Key."""
    adapter.remove_policy(section_of(rule.ptype), rule.ptype, rule.values)
    return {"status": "removed", "ptype": rule.ptype, "values": rule.values}


@router.post("/remove-filtered")
def remove_filtered_rules_api(
    rule_filter: schemas.RuleFilter,
    adapter: RuleAdapter = Depends(get_adapter),
    verified: bool = Depends(verify_admin_key)
):
    """Delete every row matching field values from field_index on. Requires Admin API Key."""
    adapter.remove_filtered_policy(
        section_of(rule_filter.ptype), rule_filter.ptype, rule_filter.field_index, *rule_filter.field_values
    )
    return {"status": "removed", "ptype": rule_filter.ptype}


@router.post("/remove-batch")
def remove_rules_api(
    batch: schemas.RuleBatch,
    adapter: RuleAdapter = Depends(get_adapter),
    verified: bool = Depends(verify_admin_key)
):
    """Delete several rules of one type in a single commit. Requires Admin API Key."""
    adapter.remove_policies(section_of(batch.ptype), batch.ptype, batch.rules)
    return {"status": "removed", "ptype": batch.ptype, "count": len(batch.rules)}


@router.put("/", response_model=schemas.RuleResponse)
def update_rule_api(
    update: schemas.RuleUpdate,
    adapter: RuleAdapter = Depends(get_adapter),
    verified: bool = Depends(verify_admin_key)
):
    """Rewrite the first row equal to old_values. Requires Admin API Key."""
    adapter.update_policy(section_of(update.ptype), update.ptype, update.old_values, update.new_values)
    return schemas.RuleResponse(ptype=update.ptype, values=update.new_values)


@router.put("/batch")
def update_rules_api(
    update: schemas.RuleBatchUpdate,
    adapter: RuleAdapter = Depends(get_adapter),
    verified: bool = Depends(verify_admin_key)
):
    """Pairwise update; batches with different lengths change nothing. Requires Admin API Key."""
    adapter.update_policies(section_of(update.ptype), update.ptype, update.old_rules, update.new_rules)
    return {"status": "updated", "ptype": update.ptype, "count": len(update.new_rules)}
