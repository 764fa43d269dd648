"""
Reporting and Export Module for the Cinema Shift Scheduling System

Exports the month's schedule matrix (staff by date, with daily headcount per
cinema) and the per-staff statistics to Excel, CSV and PDF.
"""

import pandas as pd
from openpyxl.styles import Font, PatternFill
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer, PageBreak
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import inch
from datetime import datetime, date
import calendar
from pathlib import Path
from typing import Dict, List, Optional
import logging

from .calendar_utils import format_date_key
from .data_manager import DataManager
from .scheduler_logic import ScheduleResult
from .statistics import StaffStats, summarize

logger = logging.getLogger(__name__)

FILE_EXTENSIONS = {'pdf': 'pdf', 'excel': 'xlsx', 'csv': 'csv'}
HEADER_COLOR = "366092"


class ReportGenerator:
    """Main class for generating reports and exports"""

    def __init__(self, data_manager: DataManager):
        self.data_manager = data_manager
        self.styles = getSampleStyleSheet()
        self._setup_custom_styles()

    def _setup_custom_styles(self):
        """Setup custom report styles"""
        self.styles.add(ParagraphStyle(
            name='CustomTitle',
            parent=self.styles['Heading1'],
            fontSize=18,
            spaceAfter=30,
            alignment=1  # Center alignment
        ))

        self.styles.add(ParagraphStyle(
            name='CustomHeading',
            parent=self.styles['Heading2'],
            fontSize=14,
            spaceAfter=12
        ))

    def _cell_label(self, day: date, staff_id: str) -> str:
        assignment = self.data_manager.schedule.get(day, staff_id)
        if assignment is None:
            return ''
        return self.data_manager.catalog.label(assignment.kind)

    def _cell_color(self, day: date, staff_id: str) -> Optional[str]:
        assignment = self.data_manager.schedule.get(day, staff_id)
        if assignment is None:
            return None
        return self.data_manager.catalog.color(assignment.kind)

    # PDF
    def export_schedule_pdf(self, year: int, month: int, output_path: str,
                            schedule_result: Optional[ScheduleResult] = None) -> bool:
        """Export the month's schedule, one table per week, followed by statistics"""
        try:
            doc = SimpleDocTemplate(
                output_path,
                pagesize=landscape(A4),
                rightMargin=0.5*inch,
                leftMargin=0.5*inch,
                topMargin=0.5*inch,
                bottomMargin=0.5*inch
            )

            story = []

            title = Paragraph(f"Cinema Shift Schedule - {calendar.month_name[month]} {year}",
                              self.styles['CustomTitle'])
            story.append(title)

            if schedule_result:
                story.append(self._create_generation_summary(schedule_result))
                story.append(Spacer(1, 20))

            for index, week in enumerate(self.data_manager.get_weeks(year, month)):
                story.append(Paragraph(
                    f"Week {index + 1}: {format_date_key(week[0])} - {format_date_key(week[-1])}",
                    self.styles['CustomHeading']
                ))
                story.append(self._create_week_table(week))
                story.append(Spacer(1, 12))

            story.append(PageBreak())
            story.extend(self._create_statistics_content(year, month, schedule_result))

            doc.build(story)
            return True

        except Exception as e:
            logger.error(f"Error creating PDF: {e}", exc_info=True)
            return False

    def _create_week_table(self, week: List[date]) -> Table:
        """Staff rows by day columns, with the headcount of each cinema underneath"""
        staff = self.data_manager.get_staff()
        data = [['Staff', 'Cinema'] + [day.strftime("%a %d") for day in week]]

        for member in staff:
            data.append([member.name, member.cinema_id] + [self._cell_label(day, member.id) for day in week])

        for cinema in self.data_manager.cinemas:
            data.append(["Headcount", cinema.name] + [
                str(self.data_manager.get_daily_headcount(day, cinema.id)) for day in week
            ])

        table = Table(data, colWidths=[1.4*inch, 0.8*inch] + [1.0*inch] * len(week))
        style = [
            ('BACKGROUND', (0, 0), (-1, 0), colors.grey),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
            ('ALIGN', (0, 0), (-1, -1), 'CENTER'),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('FONTSIZE', (0, 0), (-1, -1), 8),
            ('GRID', (0, 0), (-1, -1), 0.5, colors.black),
            ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ]

        for row, member in enumerate(staff, 1):
            for col, day in enumerate(week, 2):
                fill = self._cell_color(day, member.id)
                if fill:
                    style.append(('BACKGROUND', (col, row), (col, row), colors.HexColor(fill)))

        first_headcount_row = len(staff) + 1
        style.append(('BACKGROUND', (0, first_headcount_row), (-1, -1), colors.lightgrey))
        table.setStyle(TableStyle(style))
        return table

    def _create_statistics_content(self, year: int, month: int,
                                   schedule_result: Optional[ScheduleResult] = None) -> List:
        """Create statistics content for PDF"""
        content = []

        title = Paragraph("Schedule Statistics", self.styles['CustomTitle'])
        content.append(title)
        content.append(Spacer(1, 20))

        stats = self._get_statistics(year, month, schedule_result)

        stats_data = [['Staff', 'Cinema', 'Open', 'Middle', 'Close', 'Off', 'Leave', 'Weekend']]
        for record in stats:
            counts = record.counts
            stats_data.append([
                record.name,
                record.cinema_id,
                str(counts.open),
                str(counts.middle),
                str(counts.close),
                str(counts.off),
                str(counts.leave),
                str(counts.weekend_work),
            ])

        stats_table = Table(stats_data, colWidths=[1.8*inch, 1.0*inch] + [0.8*inch] * 6)
        style = [
            ('BACKGROUND', (0, 0), (-1, 0), colors.grey),
            ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
            ('ALIGN', (0, 0), (-1, -1), 'CENTER'),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('GRID', (0, 0), (-1, -1), 1, colors.black),
            ('FONTSIZE', (0, 0), (-1, -1), 9),
        ]
        # Dual-duty records stand out
        for row, record in enumerate(stats, 1):
            if record.is_dual:
                style.append(('BACKGROUND', (0, row), (-1, row), colors.lightyellow))
        stats_table.setStyle(TableStyle(style))
        content.append(stats_table)

        shortages = self.data_manager.detect_shortages(year, month)
        if shortages:
            content.append(Spacer(1, 20))
            content.append(Paragraph("Staffing Shortages", self.styles['CustomHeading']))
            shortage_data = [['Date', 'Day', 'Cinema', 'On Shift']]
            for alert in shortages:
                shortage_data.append([format_date_key(alert.date), alert.day_name, alert.cinema_name, str(alert.count)])
            shortage_table = Table(shortage_data, colWidths=[1.2*inch, 1.2*inch, 1.2*inch, 1.0*inch])
            shortage_table.setStyle(TableStyle([
                ('BACKGROUND', (0, 0), (-1, 0), colors.grey),
                ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
                ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
                ('GRID', (0, 0), (-1, -1), 1, colors.black),
                ('BACKGROUND', (0, 1), (-1, -1), colors.lightcoral),
            ]))
            content.append(shortage_table)

        return content

    def _create_generation_summary(self, schedule_result: ScheduleResult) -> Table:
        """Create generation summary table for PDF"""
        scope = "All weeks" if schedule_result.week_index is None else f"Week {schedule_result.week_index + 1}"
        summary_data = [
            ['Generation Summary', ''],
            ['Cinema', schedule_result.cinema_id],
            ['Scope', scope],
            ['Unfilled Requirements', str(len(schedule_result.unfilled))],
            ['Rest Shortfalls', str(len(schedule_result.rest_shortfalls))],
            ['Message', schedule_result.message]
        ]

        summary_table = Table(summary_data, colWidths=[2*inch, 4*inch])
        summary_table.setStyle(TableStyle([
            ('BACKGROUND', (0, 0), (-1, 0), colors.lightblue),
            ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
            ('ALIGN', (0, 0), (-1, -1), 'LEFT'),
            ('FONTSIZE', (0, 0), (-1, -1), 10),
            ('GRID', (0, 0), (-1, -1), 1, colors.black),
        ]))

        return summary_table

    def _get_statistics(self, year: int, month: int,
                        schedule_result: Optional[ScheduleResult] = None) -> List[StaffStats]:
        if schedule_result and schedule_result.statistics:
            return schedule_result.statistics
        return self.data_manager.calculate_staff_stats(year, month)

    # Excel / CSV
    def export_schedule_excel(self, year: int, month: int, output_path: str,
                              schedule_result: Optional[ScheduleResult] = None) -> bool:
        """Export schedule matrix and statistics to an Excel workbook"""
        try:
            days = self.data_manager.get_window_dates(year, month)

            with pd.ExcelWriter(output_path, engine='openpyxl') as writer:
                schedule_df = self.create_schedule_dataframe(year, month)
                schedule_df.to_excel(writer, sheet_name='Schedule', index=False)

                stats_df = self.create_statistics_dataframe(year, month, schedule_result)
                stats_df.to_excel(writer, sheet_name='Statistics', index=False)

                staff_df = self._create_staff_dataframe()
                staff_df.to_excel(writer, sheet_name='Staff', index=False)

                self._format_excel_worksheets(writer, days)

            return True

        except Exception as e:
            logger.error(f"Error exporting to Excel: {e}", exc_info=True)
            return False

    def create_schedule_dataframe(self, year: int, month: int) -> pd.DataFrame:
        """One row per staff member, one column per window date; headcount rows last"""
        days = self.data_manager.get_window_dates(year, month)
        data = []

        for member in self.data_manager.get_staff():
            row = {'Staff': member.name, 'Cinema': member.cinema_id}
            for day in days:
                row[format_date_key(day)] = self._cell_label(day, member.id)
            data.append(row)

        for cinema in self.data_manager.cinemas:
            row = {'Staff': 'Headcount', 'Cinema': cinema.id}
            for day in days:
                row[format_date_key(day)] = self.data_manager.get_daily_headcount(day, cinema.id)
            data.append(row)

        return pd.DataFrame(data, columns=['Staff', 'Cinema'] + [format_date_key(day) for day in days])

    def create_statistics_dataframe(self, year: int, month: int,
                                    schedule_result: Optional[ScheduleResult] = None) -> pd.DataFrame:
        data = []
        for record in self._get_statistics(year, month, schedule_result):
            counts = record.counts
            data.append({
                'ID': record.id,
                'Name': record.name,
                'Position': record.position,
                'Cinema': record.cinema_id,
                'Open': counts.open,
                'Middle': counts.middle,
                'Close': counts.close,
                'Off': counts.off,
                'Leave': counts.leave,
                'Weekend_Work': counts.weekend_work,
                'Dual': record.is_dual,
            })
        return pd.DataFrame(data, columns=['ID', 'Name', 'Position', 'Cinema', 'Open', 'Middle',
                                           'Close', 'Off', 'Leave', 'Weekend_Work', 'Dual'])

    def _create_staff_dataframe(self) -> pd.DataFrame:
        data = []
        for member in self.data_manager.get_staff():
            cinema = self.data_manager.get_cinema(member.cinema_id)
            data.append({
                'ID': member.id,
                'Name': member.name,
                'Cinema': cinema.name if cinema else member.cinema_id,
                'Position': member.position,
            })
        return pd.DataFrame(data, columns=['ID', 'Name', 'Cinema', 'Position'])

    def _format_excel_worksheets(self, writer, days: List[date]):
        """Header styling, shift colour fills and column widths"""
        header_fill = PatternFill(start_color=HEADER_COLOR, end_color=HEADER_COLOR, fill_type="solid")
        header_font = Font(color="FFFFFF", bold=True)

        for worksheet in writer.sheets.values():
            for cell in worksheet[1]:
                cell.fill = header_fill
                cell.font = header_font

            for column in worksheet.columns:
                max_length = max(len(str(cell.value)) if cell.value is not None else 0 for cell in column)
                worksheet.column_dimensions[column[0].column_letter].width = min(max_length + 2, 50)

        schedule_ws = writer.sheets['Schedule']
        for row, member in enumerate(self.data_manager.get_staff(), 2):
            for col, day in enumerate(days, 3):
                fill = self._cell_color(day, member.id)
                if fill:
                    hex_color = fill.lstrip('#').upper()
                    schedule_ws.cell(row=row, column=col).fill = PatternFill(
                        start_color=hex_color, end_color=hex_color, fill_type="solid"
                    )

    def export_schedule_csv(self, year: int, month: int, output_path: str) -> bool:
        """Export schedule matrix to CSV format"""
        try:
            schedule_df = self.create_schedule_dataframe(year, month)
            schedule_df.to_csv(output_path, index=False)
            return True

        except Exception as e:
            logger.error(f"Error exporting to CSV: {e}", exc_info=True)
            return False

    def create_dashboard_summary(self, year: int, month: int,
                                 schedule_result: Optional[ScheduleResult] = None) -> str:
        """Plain-text summary of the month for logs and the command line"""
        stats = self._get_statistics(year, month, schedule_result)
        shortages = self.data_manager.detect_shortages(year, month)

        lines = [f"SCHEDULE SUMMARY - {calendar.month_name[month]} {year}"]
        lines.append(f"Manual entries: {self.data_manager.count_manual_assignments(year, month)}")
        if schedule_result:
            lines.append(f"Generation: {schedule_result.message}")
            for need in schedule_result.unfilled:
                lines.append(f"  Unfilled: {need}")

        totals = summarize(stats)
        for cinema in self.data_manager.cinemas:
            records = [r for r in stats if r.cinema_id == cinema.id]
            cinema_totals = totals.get(cinema.id, {"work": 0, "weekendWork": 0, "off": 0})
            lines.append(
                f"{cinema.name}: {cinema_totals['work']} shifts, {cinema_totals['weekendWork']} on weekends "
                f"or holidays, {cinema_totals['off']} rest days"
            )
            for record in records:
                counts = record.counts
                lines.append(
                    f"  {record.name}: open {counts.open}, middle {counts.middle}, close {counts.close}, "
                    f"off {counts.off}, leave {counts.leave}, weekend {counts.weekend_work}"
                )
            missing = self.data_manager.find_unfilled_roles(year, month, cinema.id)
            if missing:
                lines.append(f"  Missing open/close: {', '.join(str(need) for need in missing)}")

        lines.append(f"Shortage days: {len(shortages)}")
        for alert in shortages:
            lines.append(f"  {format_date_key(alert.date)} ({alert.day_name}) {alert.cinema_name}: {alert.count} on shift")

        return "\n".join(lines)


class ExportManager:
    """Manager class for handling all export operations"""

    def __init__(self, data_manager: DataManager):
        self.data_manager = data_manager
        self.report_generator = ReportGenerator(data_manager)

    def export_month(self, year: int, month: int, format_type: str, output_path: str,
                     schedule_result: Optional[ScheduleResult] = None) -> bool:
        """Export the month in the specified format with optional ScheduleResult"""
        if format_type.lower() == 'pdf':
            return self.report_generator.export_schedule_pdf(year, month, output_path, schedule_result)
        elif format_type.lower() == 'excel':
            return self.report_generator.export_schedule_excel(year, month, output_path, schedule_result)
        elif format_type.lower() == 'csv':
            return self.report_generator.export_schedule_csv(year, month, output_path)
        else:
            raise ValueError(f"Unsupported format: {format_type}")

    def get_default_filename(self, year: int, month: int, format_type: str) -> str:
        """Generate default filename for export"""
        month_name = calendar.month_name[month].lower()
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        extension = FILE_EXTENSIONS.get(format_type.lower(), format_type.lower())

        return f"cinema_schedule_{month_name}_{year}_{timestamp}.{extension}"

    def batch_export(self, year: int, month: int, output_dir: str,
                     formats: List[str] = None) -> Dict[str, bool]:
        """Export schedule in multiple formats"""
        if formats is None:
            formats = ['pdf', 'excel', 'csv']

        results = {}
        output_path = Path(output_dir)
        output_path.mkdir(parents=True, exist_ok=True)

        for format_type in formats:
            filename = self.get_default_filename(year, month, format_type)
            file_path = output_path / filename

            try:
                results[format_type] = self.export_month(
                    year, month, format_type, str(file_path)
                )
            except ValueError as e:
                logger.error(f"Error exporting {format_type}: {e}")
                results[format_type] = False

        return results
