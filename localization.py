class Translator:
    """Look up report text by its English form.

    Unknown keys and unknown languages fall back to the English text. Keyword
    arguments are substituted with ``str.format`` after lookup.
    """

    def __init__(self, language: str = "en") -> None:
        self.language = language
        self.translations = {
            "en": {},
            "es": {
                # phases
                "strength": "fuerza",
                "hypertrophy": "hipertrofia",
                "definition": "definición",
                "recovery": "recuperación",
                # stagnation indicators
                "Strength progress stalled (<5% over 3+ weeks)": "Progreso de fuerza estancado (<5% en 3+ semanas)",
                "Change the rep range or increase intensity": "Considera cambiar el rango de repeticiones o aumentar la intensidad",
                "Very high average RPE (>=8.5), possible overreaching": "RPE promedio muy alto (≥8.5), posible sobreentrenamiento",
                "Reduce intensity or take a deload week": "Reduce la intensidad o toma una semana de descarga",
                "Very low average RPE (<=5), not enough stimulus": "RPE promedio muy bajo (≤5), falta de estímulo",
                "Increase training intensity or volume": "Aumenta la intensidad o el volumen de entrenamiento",
                "Low satisfaction (<=2.5), possible boredom or low motivation": "Satisfacción baja (≤2.5), posible aburrimiento o desmotivación",
                "Introduce new exercises or change the training style": "Introduce nuevos ejercicios o cambia el estilo de entrenamiento",
                "Training volume declining (>10% drop)": "Volumen de entrenamiento en declive (>10% de reducción)",
                "Review recovery capacity and adherence to the plan": "Revisa tu capacidad de recuperación y adherencia al plan",
                "Long time in {phase} phase ({weeks} weeks)": "Tiempo prolongado en fase {phase} ({weeks} semanas)",
                "Time to change training phase": "Es momento de cambiar de fase de entrenamiento",
                # intelligent suggestions
                "Rejection pattern detected": "Patrón de rechazo detectado",
                "You rejected several recent recommendations. Do your goals need adjusting?": "Has rechazado varias recomendaciones recientes. ¿Necesitas ajustar tus objetivos?",
                "Low adherence detected": "Adherencia baja detectada",
                "Your adherence is {rate:.1f}%. Consider shorter or more flexible routines.": "Tu adherencia es del {rate:.1f}%. Considera rutinas más cortas o flexibles.",
                "Satisfaction declining": "Satisfacción en declive",
                "Your workout satisfaction is dropping. Let's try new exercises.": "Tu satisfacción con los entrenamientos está bajando. Probemos nuevos ejercicios.",
                "Progress stalled": "Progreso estancado",
                "Your training volume has not changed significantly. Consider increasing intensity.": "Tu volumen de entrenamiento no ha cambiado significativamente. Considera aumentar la intensidad.",
                "Room to grow": "Potencial de crecimiento",
                "Your average RPE is low. You could handle more intensity.": "Tu RPE promedio es bajo. Podrías manejar más intensidad.",
                "Overtraining signs": "Señales de sobreentrenamiento",
                "Your average RPE is very high. Time for a deload week.": "Tu RPE promedio es muy alto. Es momento de una semana de descarga.",
                "Add variety": "Aumentar variedad",
                "You only did {count} different exercises. More variety can improve progress.": "Solo has hecho {count} ejercicios diferentes. Más variedad puede mejorar tu progreso.",
                # transition plans
                "1 week of transition": "1 semana de transición",
                "1-2 weeks of transition": "1-2 semanas de transición",
                "2 weeks of transition": "2 semanas de transición",
                "1-2 weeks": "1-2 semanas",
                "Reduce weight by 10-15%": "Reducir peso en 10-15%",
                "Increase reps to 8-12": "Aumentar repeticiones a 8-12",
                "Cut rest to 60-90 seconds": "Reducir descanso a 60-90 segundos",
                "Add isolation exercises": "Añadir ejercicios de aislamiento",
                "Adapting to higher volume": "Adaptación al mayor volumen",
                "Expect more muscle fatigue during the first days": "Espera mayor fatiga muscular los primeros días",
                "Reduce weight by 15-20%": "Reducir peso en 15-20%",
                "Increase reps to 15-20": "Aumentar repeticiones a 15-20",
                "Cut rest to 30-60 seconds": "Reducir descanso a 30-60 segundos",
                "Add cardio between sets": "Añadir cardio entre series",
                "Cardiovascular adaptation": "Adaptación cardiovascular",
                "Higher cardiovascular demand": "Mayor demanda cardiovascular",
                "Increase weight gradually": "Aumentar peso gradualmente",
                "Reduce reps to 5-8": "Reducir repeticiones a 5-8",
                "Increase rest to 2-3 minutes": "Aumentar descanso a 2-3 minutos",
                "Focus on compound exercises": "Enfocarse en ejercicios compuestos",
                "Neuromuscular readaptation": "Readaptación neuromuscular",
                "The nervous system takes time to readapt": "Toma tiempo readaptar el sistema nervioso",
                "Adjust parameters gradually": "Ajustar parámetros gradualmente",
                "Smooth transition": "Transición suave",
                "Listen to your body during the change": "Escucha a tu cuerpo durante el cambio",
                "Your current RPE is high. Take the transition more slowly.": "Tu RPE actual es alto. Toma la transición más lentamente.",
                "Your RPE varies a lot. Try to keep a more consistent effort.": "Tu RPE varía mucho. Trata de mantener un esfuerzo más consistente.",
                "You progressed quickly. Make sure your technique stays sharp.": "Has progresado rápidamente. Asegúrate de que tu técnica siga siendo perfecta.",
                "Consider training more muscle groups for balanced development.": "Considera entrenar más grupos musculares para un desarrollo balanceado.",
                # weekly report
                "Time to get started! No workouts logged this week.": "¡Es hora de comenzar! No hay entrenamientos registrados esta semana.",
                "Excellent consistency! You trained 4+ times this week.": "¡Excelente consistencia! Entrenaste 4+ veces esta semana.",
                "Good training frequency this week.": "Buena frecuencia de entrenamiento esta semana.",
                "At least you kept the habit with 1 workout.": "Al menos mantuviste el hábito con 1 entrenamiento.",
                "Your average intensity was moderate (RPE {rpe:.1f}). Consider raising the challenge.": "Tu intensidad promedio fue moderada (RPE {rpe:.1f}). Considera aumentar el desafío.",
                "You trained at high intensity (RPE {rpe:.1f}). Make sure you recover well.": "Entrenaste con alta intensidad (RPE {rpe:.1f}). Asegúrate de recuperarte bien.",
                "Balanced intensity this week (RPE {rpe:.1f}). Good job!": "Intensidad balanceada esta semana (RPE {rpe:.1f}). ¡Buen trabajo!",
                "You really enjoyed your workouts ({score:.1f}/5). Keep that motivation.": "¡Te gustaron mucho tus entrenamientos! ({score:.1f}/5) Mantén esta motivación.",
                "Looks like you did not enjoy it much ({score:.1f}/5). Let's try variations.": "Parece que no disfrutaste mucho ({score:.1f}/5). Probemos variaciones.",
                "Moderate satisfaction this week ({score:.1f}/5). There is room to improve.": "Satisfacción moderada esta semana ({score:.1f}/5). Hay espacio para mejorar.",
                "Keep building your training habit. Every session counts!": "Sigue construyendo tu hábito de entrenamiento. ¡Cada sesión cuenta!",
                "Schedule your first workout of the week. The first step matters most!": "Programa tu primer entrenamiento de la semana. ¡El primer paso es el más importante!",
                "Start with short 20-30 minute sessions to build the habit.": "Comienza con sesiones cortas de 20-30 minutos para crear el hábito.",
                "Try to add at least one more session next week for better results.": "Intenta agregar al menos una sesión más la próxima semana para mejores resultados.",
                "Consider training 3 times a week for optimal progress.": "Considera entrenar 3 veces por semana para un progreso óptimo.",
                "Excellent frequency! Make sure to include rest days for recovery.": "¡Excelente frecuencia! Asegúrate de incluir días de descanso para la recuperación.",
                "Your intensity is low. Consider gradually increasing weight or reps.": "Tu intensidad está baja. Considera aumentar gradualmente el peso o las repeticiones.",
                "Your intensity is very high. Include lighter sessions to avoid overtraining.": "Tu intensidad está muy alta. Incluye sesiones más ligeras para evitar el sobreentrenamiento.",
                "Let's try new exercises or routines to keep motivation high.": "Probemos nuevos ejercicios o rutinas para mantener la motivación alta.",
                "You love your workouts! Keep this routine that works so well.": "¡Te encantan tus entrenamientos! Mantén esta rutina que funciona tan bien.",
                "Stay consistent and listen to your body to adjust intensity.": "Mantén la consistencia y escucha a tu cuerpo para ajustar la intensidad.",
                "Warrior of the week: 5+ workouts": "Guerrero de la semana: 5+ entrenamientos",
                "Solid consistency: 3+ workouts": "Consistencia sólida: 3+ entrenamientos",
                "Marathoner: 5+ hours of training": "Maratonista: 5+ horas de entrenamiento",
                # monthly report
                "Volume increased by {value:.1f}%": "Aumento de volumen del {value:.1f}%",
                "Excellent adherence of {value:.1f}%": "Excelente adherencia del {value:.1f}%",
                "Streak of {days} consecutive days": "Racha de {days} días consecutivos",
                "Consistency goal (90%+) reached": "Meta de consistencia (90%+) alcanzada",
                "Strength progress goal (15%+) reached": "Meta de progreso de fuerza (15%+) alcanzada",
                "Reach 80% adherence": "Alcanzar 80% de adherencia",
                "Try 10+ different exercises": "Probar 10+ ejercicios diferentes",
                "Keep average RPE between 6 and 8": "Mantener RPE promedio entre 6 y 8",
                "Increase total volume by 10%": "Aumentar volumen total en 10%",
                # training insights
                "Keep focusing on {split}, it is your most successful split": "Continúa enfocándote en {split}, es tu split más exitoso",
                "Consider adjusting your workouts to {minutes} minutes for better results": "Considera ajustar la duración a {minutes} minutos para mejores resultados",
                "{day} looks like your best training day": "{day} parece ser tu mejor día de entrenamiento",
                "sunday": "domingo",
                "monday": "lunes",
                "tuesday": "martes",
                "wednesday": "miércoles",
                "thursday": "jueves",
                "friday": "viernes",
                "saturday": "sábado",
            },
        }

    def set_language(self, lang: str) -> None:
        self.language = lang

    def gettext(self, key: str, **kwargs) -> str:
        text = self.translations.get(self.language, {}).get(key, key)
        return text.format(**kwargs) if kwargs else text
