"""
Cognitive Scores API Router

Read side for dashboards and reports. Nothing here writes; every score is
recomputed from stored inputs on each request.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.database import get_db
from schemas import (
    CompositeScoresResponse,
    ReasoningQualityResponse,
    SkillStateResponse,
    SkillVectorResponse,
    WeeklyProgressResponse,
)
from services import composite_scores, weekly_progress

router = APIRouter(prefix="/v1/users/{user_id}", tags=["Cognitive Scores"])


@router.get("/skills", response_model=SkillStateResponse)
def get_skills(user_id: str, db: Session = Depends(get_db)):
    vector, estimated, last_xp_at = composite_scores.get_skill_vector(db, user_id)
    return SkillStateResponse(
        user_id=user_id,
        skills=SkillVectorResponse(**vector.as_dict()),
        baseline_estimated=estimated,
        last_xp_at=last_xp_at,
    )


@router.get("/composite-scores", response_model=CompositeScoresResponse)
def get_scores(user_id: str, db: Session = Depends(get_db)):
    """S1, S2, dual-process balance, Sharpness, Readiness, SCI, Cognitive Age and RQ."""
    scores = composite_scores.get_composite_scores(db, user_id)
    return CompositeScoresResponse(
        user_id=user_id,
        S1=scores.s1,
        S2=scores.s2,
        dual_process=scores.dual_process,
        dual_process_band=scores.dual_process_band,
        sharpness_base=scores.sharpness_base,
        sharpness=scores.sharpness,
        readiness=scores.readiness,
        readiness_band=scores.readiness_band,
        readiness_source=scores.readiness_source,
        physio_score=scores.physio_score,
        recovery=scores.recovery,
        SCI=scores.sci,
        sci_band=scores.sci_band,
        cognitive_performance=scores.cognitive_performance,
        behavioral_engagement=scores.behavioral_engagement,
        cognitive_age=scores.cognitive_age,
        baseline_cognitive_age=scores.baseline_cognitive_age,
        RQ=scores.rq.rq,
        rq_state=scores.rq.state,
        baseline_estimated=scores.baseline_estimated,
        computed_at=scores.computed_at,
        skill_decay=scores.skill_decay,
        sci_decay=scores.sci_decay,
        dual_process_decay=scores.dual_process_decay,
    )


@router.get("/reasoning-quality", response_model=ReasoningQualityResponse)
def get_rq(user_id: str, db: Session = Depends(get_db)):
    rq = composite_scores.get_reasoning_quality(db, user_id)
    return ReasoningQualityResponse(
        user_id=user_id,
        rq=rq.rq,
        state=rq.state,
        s2_core=rq.s2_core,
        s2_consistency=rq.s2_consistency,
        task_priming=rq.task_priming,
        base_rq=rq.base_rq,
        decay=rq.decay,
        floor=rq.floor,
        days_inactive=rq.days_inactive,
        slow_sessions_considered=rq.slow_sessions_considered,
        priming_tasks_considered=rq.priming_tasks_considered,
    )


@router.get("/weekly-progress", response_model=WeeklyProgressResponse)
def get_weekly(user_id: str, db: Session = Depends(get_db)):
    progress = weekly_progress.get_weekly_progress(db, user_id)
    return WeeklyProgressResponse(
        user_id=user_id,
        training_plan=progress.training_plan,
        week_start=progress.week_start.isoformat(),
        raw_by_category=progress.raw_by_category,
        capped_by_category=progress.capped_by_category,
        targets_by_category=progress.targets_by_category,
        progress_by_category=progress.progress_by_category,
        capped_total=progress.capped_total,
        total_target=progress.total_target,
        total_progress=progress.total_progress,
    )
