"""Map the compact generation schema onto the persisted document shape."""

from bodymetrics.schemas.analysis import (
    AbbreviatedAnalysis,
    FullCorrelation,
    FullCurrentState,
    FullDerivedMetric,
    FullDocument,
    FullHypothesis,
    FullLabStep,
    FullNextSteps,
    FullParadox,
    FullRisk,
    FullTrend,
    QCIssue,
)


def expand(abbreviated: AbbreviatedAnalysis) -> FullDocument:
    """Expand short keys to full names.

    Pure and total: every list in the result exists (possibly empty) and every
    scalar is a string, bool or None, so consumers need no shape checks.
    """
    a = abbreviated
    return FullDocument(
        summary=a.sum or "",
        qc_issues=[QCIssue(item=q.item, type=q.type, detail=q.detail) for q in a.qc],
        normalization_notes=list(a.norm),
        derived_metrics=[
            FullDerivedMetric(
                name=d.name,
                value=d.val,
                unit=d.unit,
                method=d.meth,
                input_used=list(d.inputs),
                valid=d.ok is not False,
                note=d.note,
            )
            for d in a.drv
        ],
        current_state=[
            FullCurrentState(
                metric=s.metric,
                latest_value=s.val,
                unit=s.unit,
                date=s.date,
                interpretation=s.interp,
            )
            for s in a.state
        ],
        trends=[
            FullTrend(
                metric=t.metric,
                direction=t.dir,
                delta_abs=t.d_abs,
                delta_pct=t.d_pct,
                start_date=t.start,
                end_date=t.end,
                comment=t.cmt,
            )
            for t in a.tr
        ],
        correlations=[
            FullCorrelation(
                between=list(r.between), strength=r.strength, pattern=r.pattern, physiology=r.phys
            )
            for r in a.rel
        ],
        paradoxes=[
            FullParadox(finding=p.finding, why_paradoxical=p.why, possible_explanations=list(p.expl))
            for p in a.px
        ],
        hypotheses=[
            FullHypothesis(claim=h.claim, evidence=list(h.ev), alt_explanations=list(h.alt))
            for h in a.hyp
        ],
        risk_assessment=[FullRisk(area=r.area, level=r.lvl, rationale=r.why) for r in a.risk],
        recommendations_next_steps=FullNextSteps(
            labs_to_repeat_or_add=[
                FullLabStep(test=lab.test, why=lab.why, timing=lab.when) for lab in a.next.labs
            ],
            lifestyle_focus=list(a.next.life),
            clinical_followup=list(a.next.clinic),
        ),
        uncertainties=list(a.unc),
        data_gaps=list(a.gaps),
    )
