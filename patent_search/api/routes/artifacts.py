from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from patent_search.db.session import get_db
from patent_search.services.artifacts import get_chart_config, get_csv

router = APIRouter()


@router.get("/charts/{chart_id}")
def get_chart(chart_id: str, db: Session = Depends(get_db)):
    """Chart configuration for rendering an embedded chart reference"""
    return get_chart_config(db, chart_id)


@router.get("/csvs/{csv_id}")
def get_csv_artifact(csv_id: str, db: Session = Depends(get_db)):
    """CSV artifact with its markdown table rendering"""
    return get_csv(db, csv_id)
