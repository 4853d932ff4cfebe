from .reports import generate_lst_report
